"""Notification text sets.

Only the wording differs between sets; every set must provide the same keys.
"""

import logging

log = logging.getLogger(__name__)

TEXTS = {
    "en": {
        "subject": "Heater report",
        "notice": (
            "Passed {threshold:g} degree-days ({label}, now {accumulated:.2f})\n"
            "started   {started}\n"
            "expected ETC: {etc}\n"
        ),
        "summary_empty": "No active trackers.",
        "summary_etc": "ETC: {etc}",
        "etc_unknown": "unknown",
    },
    "da": {
        "subject": "Varmerapport",
        "notice": (
            "Har passeret {threshold:g} graddage ({label}, nu {accumulated:.2f})\n"
            "som blev startet {started}\n"
            "forventet ETC:   {etc}\n"
        ),
        "summary_empty": "Ingen aktiv.",
        "summary_etc": "ETC: {etc}",
        "etc_unknown": "ukendt",
    },
}

DEFAULT_LANG = "en"


def get_texts(lang: str) -> dict:
    """Return the text set for ``lang``, falling back to English."""
    texts = TEXTS.get((lang or "").lower())
    if texts is None:
        log.warning("TEXTS     | unknown language %r, using %r", lang, DEFAULT_LANG)
        texts = TEXTS[DEFAULT_LANG]
    return texts


def fmt_time(dt) -> str:
    """Human-readable local timestamp, or '-' when there is none."""
    if dt is None:
        return "-"
    return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")
