"""TwiML documents used to drive calls.

Every user-supplied value is escaped before it is placed into markup; typed
text goes straight into ``<Say>`` and must never be able to inject verbs.
"""

from __future__ import annotations

from xml.sax.saxutils import escape as _xml_escape

_XML_HEADER = "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
_QUOTE_ENTITIES = {"\"": "&quot;", "'": "&apos;"}

DEFAULT_VOICE = "alice"
BASIC_VOICES = frozenset({"alice", "man", "woman"})


def escape(value: str) -> str:
    """Escape ``& < > " '`` for use in element text and attribute values."""

    return _xml_escape(value, _QUOTE_ENTITIES)


def select_voice(requested: str | None, default: str = DEFAULT_VOICE) -> str:
    """Map a loose voice preference onto one of Twilio's basic voices."""

    if not requested:
        return default
    voice = requested.strip().lower()
    if voice in BASIC_VOICES:
        return voice
    if "male" in voice and "female" not in voice:
        return "man"
    if "woman" in voice:
        return "woman"
    return default


def _say(text: str, *, voice: str, language: str) -> str:
    return f"<Say voice=\"{escape(voice)}\" language=\"{escape(language)}\">{escape(text)}</Say>"


def _start_transcription(*, callback_url: str, language: str) -> str:
    return (
        "<Start>"
        f"<Transcription statusCallbackUrl=\"{escape(callback_url)}\" "
        f"languageCode=\"{escape(language)}\" track=\"inbound_track\" partialResults=\"false\" />"
        "</Start>"
    )


def twiml_listen(*, transcription_url: str, language: str, pause_seconds: int) -> str:
    """Answer TwiML for the redirect strategy: transcribe the far end and hold the line."""

    return (
        _XML_HEADER
        + "<Response>"
        + _start_transcription(callback_url=transcription_url, language=language)
        + f"<Pause length=\"{max(1, int(pause_seconds))}\" />"
        + "</Response>"
    )


def twiml_say_and_listen(*, text: str, voice: str, language: str, pause_seconds: int) -> str:
    """Replacement TwiML that speaks ``text`` and keeps the call open afterwards."""

    return (
        _XML_HEADER
        + "<Response>"
        + _say(text, voice=voice, language=language)
        + f"<Pause length=\"{max(1, int(pause_seconds))}\" />"
        + "</Response>"
    )


def twiml_say(*, text: str, voice: str, language: str) -> str:
    return _XML_HEADER + "<Response>" + _say(text, voice=voice, language=language) + "</Response>"


def twiml_say_and_hangup(*, text: str, voice: str, language: str) -> str:
    return (
        _XML_HEADER
        + "<Response>"
        + _say(text, voice=voice, language=language)
        + "<Hangup />"
        + "</Response>"
    )


def twiml_join_conference(
    *,
    room: str,
    status_callback_url: str,
    transcription_url: str,
    language: str,
) -> str:
    """Answer TwiML for the conference strategy: transcribe, then join the room."""

    return (
        _XML_HEADER
        + "<Response>"
        + _start_transcription(callback_url=transcription_url, language=language)
        + "<Dial>"
        + f"<Conference statusCallback=\"{escape(status_callback_url)}\" "
        + "statusCallbackEvent=\"start end join leave\" statusCallbackMethod=\"POST\" "
        + "startConferenceOnEnter=\"true\" endConferenceOnExit=\"true\">"
        + escape(room)
        + "</Conference>"
        + "</Dial>"
        + "</Response>"
    )
