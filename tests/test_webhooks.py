from __future__ import annotations

import json
import xml.etree.ElementTree as ET


def _start(client) -> str:
    return client.post("/api/initiate-call", json={"to": "5551234567"}).json()["callSid"]


def test_status_webhook_for_unknown_call_acknowledges_and_changes_nothing(client):
    call_sid = _start(client)

    response = client.post("/webhook/call-status", data={"CallSid": "CA-unknown", "CallStatus": "completed"})

    assert response.status_code == 200
    assert response.text == "OK"
    calls = client.get("/api/active-calls").json()["activeCalls"]
    assert [(c["callSid"], c["status"], c["isActive"]) for c in calls] == [(call_sid, "initiated", True)]


def test_transcription_webhook_for_unknown_call_acknowledges(client):
    response = client.post(
        "/webhook/recording-transcription",
        data={"CallSid": "CA-unknown", "TranscriptionStatus": "completed", "TranscriptionText": "hi"},
    )

    assert response.status_code == 200
    assert client.get("/api/active-calls").json()["activeCalls"] == []


def test_interim_transcription_never_reaches_transcript(client):
    call_sid = _start(client)

    for text, final in (("hel", "false"), ("hello", "true")):
        response = client.post(
            "/webhook/recording-transcription",
            data={
                "CallSid": call_sid,
                "TranscriptionEvent": "transcription-content",
                "TranscriptionData": json.dumps({"transcript": text}),
                "Final": final,
            },
        )
        assert response.status_code == 200

    status = client.get(f"/api/call-status/{call_sid}").json()
    assert [t["text"] for t in status["transcriptions"]] == ["hello"]


def test_malformed_webhooks_still_acknowledge(client):
    assert client.post("/webhook/call-status", data={}).status_code == 200
    assert client.post("/webhook/recording-transcription", data={"Junk": "1"}).status_code == 200
    assert client.post("/webhook/conference-status", data={}).status_code == 200


def test_webhook_acknowledges_even_when_ingest_fails(client, app):
    import api.dependencies as deps

    class BrokenIngest:
        async def apply_status(self, event):
            raise RuntimeError("boom")

    app.dependency_overrides[deps.get_ingest] = lambda: BrokenIngest()

    response = client.post("/webhook/call-status", data={"CallSid": "CA1", "CallStatus": "ringing"})

    assert response.status_code == 200
    assert response.text == "OK"


def test_speak_message_twiml_escapes_text(client):
    response = client.get("/twiml/speak-message", params={"message": "Tom & <Jerry>", "voice": "man"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    say = ET.fromstring(response.text).find("Say")
    assert say.text == "Tom & <Jerry>"
    assert say.attrib["voice"] == "man"


def test_speak_message_twiml_accepts_form_post(client):
    response = client.post("/twiml/speak-message", data={"message": "Hello"})

    assert ET.fromstring(response.text).find("Say").text == "Hello"


def test_speak_message_twiml_without_message_is_empty(client):
    response = client.get("/twiml/speak-message")

    assert response.status_code == 200
    assert list(ET.fromstring(response.text)) == []
