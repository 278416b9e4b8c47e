"""TwiML response builders.

Every webhook turn answers with exactly one ``<Response>`` document:

  gather_prompt   <Say> inside <Gather>, Twilio posts the next turn to ``action``
  transfer        <Say> then <Dial> to a human agent
  hangup          <Say> then <Hangup/>
  dial_out        <Dial callerId=...> for calls placed from a SIP softphone

Protocol reference:
  https://www.twilio.com/docs/voice/twiml
"""

from __future__ import annotations

import re
from xml.etree.ElementTree import Element, SubElement, tostring


def _render(response_el: Element) -> str:
    return tostring(response_el, encoding="unicode", xml_declaration=True)


def gather_prompt(
    text: str,
    action: str,
    timeout: int = 6,
    language: str = "en-US",
) -> str:
    """Speak ``text`` and listen for one keypress or an utterance.

    ``actionOnEmptyResult`` makes Twilio post silence back to us too, so
    a silent turn reaches the dialogue instead of dropping the call.
    """
    response_el = Element("Response")
    gather_el = SubElement(response_el, "Gather")
    gather_el.set("input", "dtmf speech")
    gather_el.set("numDigits", "1")
    gather_el.set("action", action)
    gather_el.set("method", "POST")
    gather_el.set("speechTimeout", "auto")
    gather_el.set("timeout", str(timeout))
    gather_el.set("language", language)
    gather_el.set("actionOnEmptyResult", "true")
    say_el = SubElement(gather_el, "Say")
    say_el.text = text
    return _render(response_el)


def transfer(text: str, number: str) -> str:
    response_el = Element("Response")
    SubElement(response_el, "Say").text = text
    SubElement(response_el, "Dial").text = number
    return _render(response_el)


def hangup(text: str) -> str:
    response_el = Element("Response")
    SubElement(response_el, "Say").text = text
    SubElement(response_el, "Hangup")
    return _render(response_el)


def dial_out(number: str, caller_id: str = "") -> str:
    response_el = Element("Response")
    dial_el = SubElement(response_el, "Dial")
    if caller_id:
        dial_el.set("callerId", caller_id)
    dial_el.text = number
    return _render(response_el)


def normalize_e164(number: str, default_country: str = "1") -> str:
    """Force a dialed number into E.164.

    SIP softphones often send ``sip:8435551234@domain`` or a bare
    national number; both become ``+18435551234``.
    """
    value = (number or "").strip()
    if value.lower().startswith("sip:"):
        value = value[4:].split("@", 1)[0]
    if value.startswith("+"):
        return "+" + re.sub(r"\D", "", value)
    digits = re.sub(r"\D", "", value)
    if not digits:
        return ""
    if len(digits) == 10:
        return f"+{default_country}{digits}"
    return f"+{digits}"
