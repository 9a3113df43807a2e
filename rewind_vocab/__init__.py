"""Rewind Vocabulary Logger: vocabulary tracking from replayed video segments.

WHY: A learner watching subtitled video rewinds exactly where they did not
understand something. Every rewind is a signal about which words are still
unfamiliar. This package turns those rewinds into a persistent vocabulary
ledger with encounter counts, mastery levels, and example sentences.

HOW: Four-stage pipeline: detect (segment detector), align (cue store fed
by the acquisition strategy chain), normalize (lexical normalizer), record
(vocabulary ledger). The orchestrator wires them together per replay event.

RULES:
- All interval math is in integer milliseconds
- The cue store answers "no data" (None) distinctly from "matched nothing"
- Acquisition failures fall through the chain; they never crash the pipeline
- Ledger batches are atomic; session bookkeeping is best-effort
"""

__version__ = "0.1.0"
