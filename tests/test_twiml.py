from __future__ import annotations

import xml.etree.ElementTree as ET

from integrations.twiml import (
    escape,
    select_voice,
    twiml_join_conference,
    twiml_listen,
    twiml_say,
    twiml_say_and_hangup,
    twiml_say_and_listen,
)


def test_escape_covers_markup_characters():
    assert escape("<a href=\"x\">Tom & Jerry's</a>") == (
        "&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&apos;s&lt;/a&gt;"
    )


def test_say_cannot_inject_verbs():
    xml = twiml_say(text="</Say><Hangup/><Say>", voice="alice", language="en-US")
    root = ET.fromstring(xml)

    assert [child.tag for child in root] == ["Say"]
    assert root.find("Say").text == "</Say><Hangup/><Say>"


def test_say_and_listen_keeps_call_open():
    xml = twiml_say_and_listen(text="Hello, it's me", voice="woman", language="en-US", pause_seconds=120)
    root = ET.fromstring(xml)

    assert [child.tag for child in root] == ["Say", "Pause"]
    assert root.find("Say").attrib["voice"] == "woman"
    assert root.find("Say").text == "Hello, it's me"
    assert root.find("Pause").attrib["length"] == "120"


def test_listen_starts_inbound_transcription():
    xml = twiml_listen(
        transcription_url="https://relay.example.com/webhook/recording-transcription?a=1&b=2",
        language="en-US",
        pause_seconds=0,
    )
    root = ET.fromstring(xml)
    transcription = root.find("Start/Transcription")

    assert transcription.attrib["statusCallbackUrl"].endswith("?a=1&b=2")
    assert transcription.attrib["track"] == "inbound_track"
    assert root.find("Pause").attrib["length"] == "1"


def test_say_and_hangup_ends_with_hangup():
    root = ET.fromstring(twiml_say_and_hangup(text="Goodbye.", voice="alice", language="en-US"))
    assert [child.tag for child in root] == ["Say", "Hangup"]


def test_join_conference_names_the_room():
    root = ET.fromstring(
        twiml_join_conference(
            room="tty-abc",
            status_callback_url="https://relay.example.com/webhook/conference-status",
            transcription_url="https://relay.example.com/webhook/recording-transcription",
            language="en-US",
        )
    )
    conference = root.find("Dial/Conference")

    assert conference.text == "tty-abc"
    assert conference.attrib["statusCallbackEvent"] == "start end join leave"
    assert root.find("Start/Transcription") is not None


def test_select_voice():
    assert select_voice(None) == "alice"
    assert select_voice("Male voice") == "man"
    assert select_voice("female") == "alice"
    assert select_voice("Woman") == "woman"
    assert select_voice("man") == "man"
    assert select_voice("robot", default="woman") == "woman"
