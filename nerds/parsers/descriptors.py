"""Schema descriptors and Markdown outlines embedded verbatim into prompts.

Descriptors are hand-written pseudo-schemas. Top-level keys sit at two spaces
of indentation and nested keys deeper; the mock provider relies on that.
"""

from __future__ import annotations

_THOUGHT_LOG_FIELD = """\
  // the "thought_log" array is for tracking your own thoughts as you carry out your task.
  // Please log your process and observations here as you go, ensuring to keep your thoughts in order.
  // Use these thoughts as you complete your task to help you stay focused.
  "thought_log": string[],"""

REVISIONS_SCHEMA = (
    "{\n"
    + _THOUGHT_LOG_FIELD
    + """

  // return as many proposed edits as you can so long as you are confident that they serve the needs of the operation requested.
  "proposed_edits": [{
    // the line number in the source document where the text you'd like to replace is found.
    "line_number": number,

    // the specific text from the source document that you'd like to replace. this should be identifiable via string matching, it must be exact.
    "existing_text": string,

    // offer a string of text to replace the selection above. An empty string is a valid value for removal.
    "proposed_replacement": string,

    // explain why you are proposing this edit
    "reasoning": string,

    // set this to true if there are multiple matches on the issue you're flagging. If so, your "existing_text" should match them all.
    "multiple_matches"?: boolean,

    // a value from 0-1 expressing how certain you are that the edit you're proposing is necessary and correct.
    "confidence": number
  }]
}"""
)

FINDINGS_SCHEMA = (
    "{\n"
    + _THOUGHT_LOG_FIELD
    + """

  // Your task is to identify some set of findings. Please return them here as individual strings.
  "findings": string[]
}"""
)

GRAPH_SCHEMA = (
    "{\n"
    + _THOUGHT_LOG_FIELD
    + """

  // the concepts you identified, each with a unique name and a short category label.
  "vertices": [{
    "name": string,
    "label": string
  }],

  // the relationships between concepts. "from" and "to" must be names from "vertices".
  "edges": [{
    "label": string,
    "from": string,
    "to": string
  }]
}"""
)

CODE_SNIPPET_OUTLINE = """\
```<language_name>
<your code here>
```"""

SUMMARY_OUTLINE = """\
# <Title>
<A brief introduction to the document, including a summary of the source text and the purpose of the document.>
## Summary
<A summary of the source document, being careful to follow all instructions that you've been given.
Once you've written your general summary, iteratively add subsections as below until you've fully explored the source text.
A reader of this summary should walk away with not only a nuanced understanding of ALL of the author's points, but also an analysis of the implications
and a set of open questions to explore further.>

### <Subsection Title>
<A subsection summary that includes key points and implications from the text.>

#### Key Points
1. <A key point that the author is trying to make, along with references to where in the source text it appeared.>
2. <continue until all key points have been captured>

#### Open Questions
1. <A question that an intelligent and curious reader might ask after reading this section.>
2. <continue as needed>

## Conclusions
<Based on your understanding of the text, please highlight any non-obvious implications in the source text.
Then conclude, formulating a closing statement that summarizes the primary thrust of the source text.>"""

__all__ = [
    "REVISIONS_SCHEMA",
    "FINDINGS_SCHEMA",
    "GRAPH_SCHEMA",
    "CODE_SNIPPET_OUTLINE",
    "SUMMARY_OUTLINE",
]
