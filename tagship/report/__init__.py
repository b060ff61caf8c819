"""tagship terminal reporting.

Modules
-------
renderer
    ``ReportRenderer`` turns matrix results, artifact digests, channel
    plans and ``PipelineReport`` into Rich renderables.
"""
