"""Inbound lead-event ingestion and normalization pipeline.

Webhook payloads from the AudienceLab identity graph are validated
(``leadpipe.intake``), stored as raw events (``leadpipe.bronze``),
normalized into canonical identities (``leadpipe.normalize``), upserted as
workspace leads (``leadpipe.leads``), routed to recipients
(``leadpipe.routing``) and recorded in the processing ledger
(``leadpipe.ledger``). ``leadpipe.pipeline`` wires the stages together.
"""
