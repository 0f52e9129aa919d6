"""Plain-language explanations (and translations) of official letters.

Two strategies: a local heuristic that always works offline, and an OpenAI
chat completion. `EXPLAIN_PROVIDER` picks one; `auto` uses OpenAI whenever an
API key is configured.
"""
import re
from typing import List

from fastapi import APIRouter, Depends
from openai import OpenAI, OpenAIError

from . import config
from .deps import require_active_subscription
from .errors import ConfigurationError, UpstreamError, ValidationError
from .log import get_logger
from .schemas import ExplainIn, ResultOut, TranslateIn

logger = get_logger(__name__)

router = APIRouter(tags=["explain"])

SYSTEM_PROMPT = "Du bist ein Assistent für leicht verständliche Behördenerklärungen."

EXPLAIN_PROMPT = (
    "Erkläre den folgenden Behörden-/Brieftext in sehr einfachem Deutsch.\n"
    "Regeln:\n"
    "- Bulletpoints\n"
    "- Was bedeutet das?\n"
    "- Was muss ich jetzt tun?\n"
    "- Welche Fristen/Termine?\n"
    "- Welche Unterlagen?\n"
    "- Max. 12 Zeilen\n\n"
    "TEXT:\n"
)

LANGUAGES = {
    "de": "einfaches Deutsch",
    "en": "einfaches Englisch",
    "tr": "einfaches Türkisch",
    "ar": "einfaches Arabisch",
    "uk": "einfaches Ukrainisch",
    "ru": "einfaches Russisch",
    "pl": "einfaches Polnisch",
    "fr": "einfaches Französisch",
    "es": "einfaches Spanisch",
}

EMPTY_COMPLETION = "Keine Erklärung erhalten."

SENDERS = [
    ("finanzamt", "Der Brief kommt vom Finanzamt. Es geht meistens um Steuern."),
    ("jobcenter", "Der Brief kommt vom Jobcenter. Es geht meistens um Bürgergeld oder Termine."),
    ("agentur für arbeit", "Der Brief kommt von der Agentur für Arbeit."),
    ("krankenkasse", "Der Brief kommt von der Krankenkasse."),
    ("ausländerbehörde", "Der Brief kommt von der Ausländerbehörde. Es geht oft um den Aufenthalt."),
    ("familienkasse", "Der Brief kommt von der Familienkasse. Es geht meistens um Kindergeld."),
    ("rentenversicherung", "Der Brief kommt von der Rentenversicherung."),
    ("bürgeramt", "Der Brief kommt vom Bürgeramt."),
    ("gericht", "Der Brief kommt von einem Gericht. Bitte besonders ernst nehmen."),
    ("mahnung", "Das ist eine Mahnung: Eine Zahlung ist offen."),
    ("inkasso", "Ein Inkasso-Büro fordert Geld. Prüfe, ob die Forderung stimmt."),
]

DOCUMENT_WORDS = [
    "Unterlagen", "Nachweis", "Nachweise", "Bescheinigung", "Kontoauszüge", "Kopie",
    "Formular", "Antrag", "Ausweis", "Lohnabrechnung", "Mietvertrag", "Vollmacht",
]

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_DATE = re.compile(r"\b\d{1,2}\.\s?\d{1,2}\.\s?(?:\d{4}|\d{2})\b")
_WITHIN = re.compile(r"\binnerhalb (?:von )?(?:\w+ )?(?:\d+|einem|einer|zwei|drei|vier) (?:Tag|Tagen|Woche|Wochen|Monat|Monaten)\b", re.IGNORECASE)
_AMOUNT = re.compile(r"\b\d{1,3}(?:\.\d{3})*(?:,\d{2})?\s?(?:€|EUR|Euro)|€\s?\d{1,3}(?:\.\d{3})*(?:,\d{2})?", re.IGNORECASE)
_ACTIONS = [
    (re.compile(r"\b(zahlen|überweisen|begleichen)\b", re.IGNORECASE), "Den offenen Betrag rechtzeitig bezahlen oder widersprechen, wenn er falsch ist."),
    (re.compile(r"\b(einreichen|zusenden|vorlegen|nachreichen|schicken)\b", re.IGNORECASE), "Die verlangten Unterlagen zusammensuchen und einreichen."),
    (re.compile(r"\b(termin|einladung|erscheinen)\b", re.IGNORECASE), "Zum Termin gehen oder rechtzeitig absagen."),
    (re.compile(r"\bwiderspruch\b", re.IGNORECASE), "Wenn du nicht einverstanden bist: Widerspruch innerhalb der Frist schreiben."),
    (re.compile(r"\b(anhörung|stellungnahme)\b", re.IGNORECASE), "Du darfst dich äußern. Antworte schriftlich vor der Frist."),
]


def clean_text(text) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Kein Text übergeben.", code="empty_text")
    if len(text) > config.MAX_TEXT_LENGTH:
        raise ValidationError(f"Der Text ist zu lang (max. {config.MAX_TEXT_LENGTH} Zeichen).", code="text_too_long")
    return text


def split_sentences(text: str) -> List[str]:
    flat = re.sub(r"\s+", " ", text).strip()
    return [s.strip() for s in _SENTENCE_END.split(flat) if s.strip()]


def _unique(items):
    seen = []
    for item in items:
        item = re.sub(r"\s+", " ", item).strip()
        if item not in seen:
            seen.append(item)
    return seen


def _shorten(sentence: str, limit: int = 160) -> str:
    if len(sentence) <= limit:
        return sentence
    return sentence[:limit].rsplit(" ", 1)[0] + " …"


def explain_locally(text: str) -> str:
    sentences = split_sentences(text)
    lower = text.lower()

    lines = ["Das ist eine einfache Erklärung:", ""]

    lines.append("Worum geht es?")
    lines.append(f"- {_shorten(sentences[0])}")
    for needle, hint in SENDERS:
        if needle in lower:
            lines.append(f"- {hint}")
            break

    deadlines = _unique(_DATE.findall(text) + _WITHIN.findall(text))
    if deadlines:
        lines += ["", "Fristen und Termine:"]
        lines += [f"- {d}" for d in deadlines]

    amounts = _unique(_AMOUNT.findall(text))
    if amounts:
        lines += ["", "Beträge:"]
        lines += [f"- {a}" for a in amounts]

    documents = [w for w in DOCUMENT_WORDS if re.search(rf"\b{w}\b", text, re.IGNORECASE)]
    if documents:
        lines += ["", "Unterlagen:"]
        lines += [f"- {d}" for d in documents]

    actions = [hint for pattern, hint in _ACTIONS if pattern.search(text)]
    lines += ["", "Was muss ich jetzt tun?"]
    if actions:
        lines += [f"- {a}" for a in actions]
    else:
        lines.append("- Prüfe, ob Fristen oder Aufgaben drin stehen.")
    lines.append("- Wenn du unsicher bist: markiere die wichtigsten Stellen und frage nach.")

    lines += ["", "Kurz gesagt: Bitte lies den Text genau und reagiere ggf. rechtzeitig."]
    return "\n".join(lines)


def _complete(prompt: str) -> str:
    client = OpenAI(api_key=config.OPENAI_API_KEY, timeout=config.OPENAI_TIMEOUT, max_retries=0)
    try:
        response = client.chat.completions.create(
            model=config.OPENAI_MODEL,
            temperature=0.2,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
    except OpenAIError as e:
        logger.warning(f"OpenAI request failed: {e}")
        raise UpstreamError("OpenAI Fehler")
    content = response.choices[0].message.content if response.choices else None
    return (content or "").strip() or EMPTY_COMPLETION


def use_openai() -> bool:
    provider = config.EXPLAIN_PROVIDER
    if provider == "local":
        return False
    if provider == "openai":
        if not config.OPENAI_API_KEY:
            raise ConfigurationError("OPENAI_API_KEY fehlt", code="explain_not_configured")
        return True
    return bool(config.OPENAI_API_KEY)


def explain(text) -> str:
    text = clean_text(text)
    if use_openai():
        return _complete(EXPLAIN_PROMPT + text)
    return explain_locally(text)


def translate(text, target: str = "de") -> str:
    text = clean_text(text)
    language = LANGUAGES.get((target or "").strip().lower())
    if language is None:
        raise ValidationError("Unbekannte Zielsprache", code="unknown_language")
    if not config.OPENAI_API_KEY:
        raise ConfigurationError("Übersetzung ist nicht konfiguriert", code="translate_not_configured")
    return _complete(f"Übersetze den folgenden Text in {language}. Behalte Fristen, Beträge und Namen bei.\n\nTEXT:\n{text}")


@router.post("/erklaeren", response_model=ResultOut)
@router.post("/api/explain", response_model=ResultOut)
def explain_route(payload: ExplainIn):
    return ResultOut(result=explain(payload.text))

@router.post("/api/translate", response_model=ResultOut)
def translate_route(payload: TranslateIn, user=Depends(require_active_subscription)):
    return ResultOut(result=translate(payload.text, payload.target))
