"""Call session tracking and the text-to-speech / speech-to-text relay.

The registry is the single source of truth for call state. Webhook ingest
and the command service both receive it explicitly; nothing in this package
keeps module-level state.
"""
