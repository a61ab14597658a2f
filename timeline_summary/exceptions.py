"""Errors raised by the summarization pipeline.

Step-level failures (fetch, batch submission) abort a run. Per-period
generation failures and malformed quarterly output are collected by the
pipeline and never escape it.
"""


class SummaryPipelineError(Exception):
    pass


class FetchError(SummaryPipelineError):
    """A store query or pagination request failed."""


class GenerationFailed(SummaryPipelineError):
    """The AI service did not return the requested structured call."""


class MalformedOutput(SummaryPipelineError):
    """Generated output does not have the shape the aggregator expects."""


class PersistenceError(SummaryPipelineError):
    """A batch create/update request was rejected as a whole."""
