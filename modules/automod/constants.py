from __future__ import annotations

import re

# Built-in multilingual word list; tenants extend it with ``profanity.custom_words``.
PROFANITY_WORDS: dict[str, tuple[str, ...]] = {
    "portuguese": (
        "porra",
        "merda",
        "caralho",
        "puta",
        "fdp",
        "filho da puta",
        "buceta",
        "cu",
        "cuzao",
        "cuzão",
        "babaca",
        "idiota",
        "imbecil",
        "burro",
        "otario",
        "otário",
        "desgraça",
        "vagabundo",
        "safado",
        "piranha",
        "vadia",
        "prostituta",
    ),
    "english": (
        "fuck",
        "shit",
        "bitch",
        "asshole",
        "damn",
        "hell",
        "crap",
        "piss",
        "dick",
        "cock",
        "pussy",
        "whore",
        "slut",
        "bastard",
        "motherfucker",
        "nigger",
        "faggot",
        "retard",
        "tranny",
    ),
}

BUILTIN_PROFANITY: tuple[str, ...] = tuple(
    dict.fromkeys(word for words in PROFANITY_WORDS.values() for word in words)
)

MIN_PROFANITY_WORD_LENGTH = 2

DISCORD_INVITE_PATTERN = re.compile(
    r"discord(?:\.gg|\.com/invite|app\.com/invite)/[a-zA-Z0-9]+",
    re.IGNORECASE,
)

SUSPICIOUS_LINK_PATTERNS: tuple[str, ...] = (
    r"discord\.gg/[a-zA-Z0-9]+",
    r"discordapp\.com/invite/[a-zA-Z0-9]+",
    r"discord\.com/invite/[a-zA-Z0-9]+",
    r"bit\.ly/[a-zA-Z0-9]+",
    r"tinyurl\.com/[a-zA-Z0-9]+",
    r"t\.co/[a-zA-Z0-9]+",
    r"goo\.gl/[a-zA-Z0-9]+",
    r"shorturl\.at/[a-zA-Z0-9]+",
    r"https?://[^\s<>]+",
)

DEFAULT_LINK_WHITELIST: tuple[str, ...] = (
    "youtube.com",
    "youtu.be",
    "twitch.tv",
    "discord.gg",
    "github.com",
    "twitter.com",
    "instagram.com",
    "facebook.com",
    "reddit.com",
    "pubg.com",
    "steam.com",
    "steamcommunity.com",
)

DEFAULT_LINK_BLACKLIST: tuple[str, ...] = (
    "bit.ly",
    "tinyurl.com",
    "shorturl.at",
)

NON_ACTIONABLE_HOSTS = frozenset({"localhost"})

# Discord caps timeouts at 28 days and message purges on ban at 7 days.
MAX_MUTE_MINUTES = 28 * 24 * 60
MAX_BAN_DELETE_DAYS = 7

MAX_CUSTOM_WORDS = 500
MAX_CUSTOM_WORD_LENGTH = 100
MAX_HOST_ENTRIES = 200
MAX_CUSTOM_PATTERNS = 50
MAX_EXEMPTION_ENTRIES = 500
