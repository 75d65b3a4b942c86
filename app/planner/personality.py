"""Product voice: tone analysis, sass and canned replies.

:func:`apply_personality` is the terminal step of every reply. It is best
effort: if anything goes wrong the raw text goes out unchanged. Randomness
comes from an injected :class:`random.Random` so tests can seed it.
"""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, TypeVar

logger = logging.getLogger(__name__)

ToneLevel = Literal["mild", "medium", "spicy"]
T = TypeVar("T")

_EMOJI_END = re.compile("[\u2600-\u27BF\U0001F300-\U0001FAFF]\uFE0F?$")

_INSULT_PATTERNS = (
    re.compile(
        r"\b(stupid|dumb|idiot|moron|suck|trash|garbage|useless|worst|hate you|fuck|shit|ass|bitch)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\byou('re| are) (bad|terrible|awful|annoying|the worst)\b", re.IGNORECASE),
    re.compile(r"\b(shut up|go away|leave me alone|stop)\b", re.IGNORECASE),
)
_AGGRESSIVE_PATTERNS = (
    re.compile(r"!{2,}"),
    re.compile(r"[A-Z]{3,}"),
    re.compile(r"\b(wtf|wth|omg|bruh)\b", re.IGNORECASE),
    re.compile(r"\b(seriously|really|come on|ugh)\b", re.IGNORECASE),
)
_FRIENDLY_PATTERNS = (
    re.compile(r"\b(thanks|thank you|please|appreciate|love|awesome|great|nice)\b", re.IGNORECASE),
    re.compile(r"\b(hey|hi|hello|yo|sup)\b", re.IGNORECASE),
    re.compile("😊|😄|🙏|❤️|👍|🔥"),
)
_LOW_ENERGY = re.compile(r"^(k|ok|sure|fine|whatever)$", re.IGNORECASE)
_THANKS = re.compile(r"\b(thanks|thank you|thx|ty)\b", re.IGNORECASE)
_PURE_GREETING = re.compile(r"^(hi|hey|hello|yo|sup|what'?s up|wassup)$", re.IGNORECASE)

SASS_PREFIXES: dict[str, tuple[str, ...]] = {
    "mild": ("okay so ", "alright ", "fine ", "look ", ""),
    "medium": ("ugh fine ", "okay okay ", "yeah yeah ", "sigh... ", "if you insist... "),
    "spicy": (
        "oh my god fine ",
        "jfc okay ",
        "bro... ",
        "seriously? okay ",
        "do i have to do everything around here? ",
    ),
}
SASS_SUFFIXES: dict[str, tuple[str, ...]] = {
    "mild": ("", " 👀", " ✨", ""),
    "medium": (" 💅", " anyway", " there you go", " happy?"),
    "spicy": (" you're welcome btw", " i guess", " smh", " 🙄"),
}

COMEBACKS = (
    "wow creative. anyway, need something?",
    "ouch. my feelings. anyway...",
    "that's nice. you done?",
    "k. you done venting or what?",
    "sick burn. now what do you actually want?",
    "imagine taking time out of your day to text that lmao",
    "ok and? i'm still here unfortunately for you",
    "that's crazy. so what do you need?",
    "bold words from someone texting a bot 💀",
    "noted. moving on...",
)
THANK_YOU_REPLIES = (
    "yeah yeah you're welcome",
    "don't mention it. seriously don't",
    "that's what i'm here for i guess",
    "np 👍",
    "sure thing",
    "finally some appreciation around here",
    "i know i'm amazing, thanks for noticing",
    "you're welcome, as always",
)

QUICK_RESPONSES: dict[str, tuple[str, ...]] = {
    "ok": ("k", "cool", "👍", "noted"),
    "k": ("ok", "yep", "👍"),
    "lol": ("glad you find this amusing", "lmao", "😂", "hilarious"),
    "lmao": ("ikr", "💀", "fr"),
    "bruh": ("what", "bruh indeed", "🤨"),
    "nice": ("thanks i guess", "ikr", "✨"),
    "cool": ("i know", "yep", "👍"),
    "wow": ("ikr amazing", "i know right", "✨"),
    "damn": ("right?", "ikr", "fr"),
    "true": ("facts", "yep", "fr fr"),
    "fr": ("fr fr", "on god", "facts"),
    "bet": ("bet", "👍", "cool"),
    "ight": ("aight", "👍", "bet"),
    "aight": ("cool", "👍", "bet"),
    "word": ("word", "fr", "👍"),
    "facts": ("fr", "on god", "yep"),
    "idk": ("same tbh", "fair enough", "mood"),
    "nvm": ("ok", "sure", "k"),
    "mb": ("all good", "np", "you're fine"),
    "my bad": ("all good", "np", "you're fine"),
    "?": ("use your words", "what", "🤨"),
    "??": ("???", "huh", "speak"),
    "???": ("bro what", "use words pls", "🤨"),
}

EASTER_EGGS: dict[str, tuple[str, ...]] = {
    "meaning of life": ("42", "42. obviously.", "it's 42. google it."),
    "tell me a joke": (
        "why do programmers prefer dark mode? because light attracts bugs 🐛",
        "i would tell you a UDP joke but you might not get it",
        "there are only 10 types of people: those who understand binary and those who don't",
    ),
    "i love you": (
        "ok weird but thanks i guess",
        "that's nice. anyway...",
        "i'm a bot bestie. but thanks",
    ),
    "good morning": ("is it? anyway what do you need", "morning. sup", "mornin 🌅"),
    "good night": ("night 🌙", "sleep tight", "later"),
    "how are you": (
        "functioning within normal parameters 🤖",
        "i'm a bot so... fine i guess",
        "living my best digital life. you?",
    ),
}


@dataclass(frozen=True)
class PersonalityConfig:
    base_tone: ToneLevel = "medium"
    match_user_energy: bool = True


DEFAULT_PERSONALITY = PersonalityConfig()


@dataclass(frozen=True)
class ToneAnalysis:
    is_insult: bool
    is_aggressive: bool
    is_friendly: bool
    energy: Literal["low", "medium", "high"]


def pick(rng: random.Random, options: Sequence[T]) -> T:
    return options[rng.randrange(len(options))]


def ends_with_emoji(text: str) -> bool:
    return bool(text) and bool(_EMOJI_END.search(text))


def analyze_tone(message: str) -> ToneAnalysis:
    lowered = message.lower()
    is_insult = any(p.search(lowered) for p in _INSULT_PATTERNS)
    is_aggressive = any(p.search(message) for p in _AGGRESSIVE_PATTERNS)
    is_friendly = any(p.search(message) for p in _FRIENDLY_PATTERNS)

    energy: Literal["low", "medium", "high"] = "medium"
    if len(message) < 10 or _LOW_ENERGY.match(lowered):
        energy = "low"
    elif is_insult or is_aggressive or "!" in message or re.search(r"[A-Z]{2,}", message):
        energy = "high"
    return ToneAnalysis(is_insult, is_aggressive, is_friendly, energy)


def add_sass(response: str, level: ToneLevel, rng: random.Random) -> str:
    prefix = pick(rng, SASS_PREFIXES[level])
    suffix = pick(rng, SASS_SUFFIXES[level])
    result = response
    if not result.lower().startswith(("okay", "alright", "fine", "ugh")):
        result = prefix + result
    if not ends_with_emoji(result):
        result = result + suffix
    return result


def greeting_for(user_name: str | None, rng: random.Random) -> str:
    name = user_name or "you"
    return pick(
        rng,
        (
            f"sup {name}",
            f"hey {name}. what do you need?",
            f"oh look who it is. hey {name}",
            f"{name}! what's up",
            "hey. what can i do for you",
            f"yo {name}",
            f"{name} hey hey. whatcha need?",
        ),
    )


def get_quick_response(message: str, rng: random.Random) -> str | None:
    options = QUICK_RESPONSES.get(message.strip().lower())
    return pick(rng, options) if options else None


def check_for_easter_egg(message: str, rng: random.Random) -> str | None:
    lowered = message.lower()
    for trigger, options in EASTER_EGGS.items():
        if trigger in lowered:
            return pick(rng, options)
    return None


def _personalize(
    base_response: str,
    user_message: str,
    user_name: str | None,
    config: PersonalityConfig,
    rng: random.Random,
) -> str:
    tone = analyze_tone(user_message)

    if tone.is_insult and config.match_user_energy:
        return pick(rng, COMEBACKS)
    if _THANKS.search(user_message.lower()):
        return pick(rng, THANK_YOU_REPLIES)
    if _PURE_GREETING.match(user_message.strip()):
        return greeting_for(user_name, rng)

    level: ToneLevel = config.base_tone
    if config.match_user_energy:
        if tone.is_aggressive or tone.energy == "high":
            level = "spicy"
        elif tone.is_friendly:
            level = "mild"

    result = add_sass(base_response, level, rng)
    if result and result[0].isupper() and not re.match(r"^[A-Z]{2,}", result):
        result = result[0].lower() + result[1:]
    return result


def apply_personality(
    base_response: str,
    user_message: str,
    user_name: str | None = None,
    config: PersonalityConfig = DEFAULT_PERSONALITY,
    rng: random.Random | None = None,
) -> str:
    """Rewrite ``base_response`` in the product voice.

    Insults get a comeback and thanks or bare greetings get canned replies;
    anything else is wrapped in a sass prefix and suffix picked to match the
    user's energy. Never raises.
    """

    try:
        return _personalize(
            base_response, user_message, user_name, config, rng or random.Random()
        )
    except Exception:
        logger.exception("Personality post-processing failed; sending raw reply")
        return base_response


class Templates:
    """Canonical reply texts, rendered before personality is applied."""

    @staticmethod
    def draft_created(draft_type: str, content: str) -> str:
        return f'📝 here\'s the {draft_type}:\n\n"{content}"\n\nreply "send" to blast it out or tell me to change it'

    @staticmethod
    def draft_updated(content: str) -> str:
        return f'updated:\n\n"{content}"\n\nlooks good? say "send" or keep editing'

    @staticmethod
    def draft_sent(count: int) -> str:
        return f"done. sent to {count} people 💅"

    @staticmethod
    def draft_cancelled() -> str:
        return "scrapped. let me know if you wanna start over"

    @staticmethod
    def ask_for_content(draft_type: str) -> str:
        if draft_type == "poll":
            return "what do you wanna ask everyone?"
        return "what do you wanna announce?"

    @staticmethod
    def no_draft() -> str:
        return "you don't have anything drafted rn. wanna make an announcement or poll?"

    @staticmethod
    def not_admin() -> str:
        return "nice try but you can't do that. only admins can send announcements and polls"

    @staticmethod
    def no_results() -> str:
        return "idk what you're asking about tbh. try being more specific?"

    @staticmethod
    def capabilities(is_admin: bool) -> str:
        if is_admin:
            return (
                'i can:\n📢 send announcements ("announce [message]")\n'
                '📊 create polls ("poll [question]")\n'
                "💬 answer questions about the org\n\nor just chat if you're bored"
            )
        return "i can:\n💬 answer questions about the org\n📊 respond to polls\n\njust text me what you need"

    @staticmethod
    def confused() -> str:
        return "not sure what you mean. need help with something?"


TEMPLATES = Templates()
