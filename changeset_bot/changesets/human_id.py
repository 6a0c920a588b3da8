"""
生成人类可读的随机 id（例如 `brave-owls-dance`），用作新 changeset 的建议文件名。

不是密钥，只需要“大概率不撞名 + 好读”。
"""

from __future__ import annotations

import random

ADJECTIVES: tuple[str, ...] = (
    "brave", "calm", "chilly", "clever", "cool", "curly", "eager", "early",
    "empty", "fair", "fast", "few", "fluffy", "funny", "gentle", "giant",
    "good", "green", "happy", "heavy", "honest", "lazy", "light", "little",
    "loud", "lucky", "mighty", "modern", "neat", "nice", "odd", "old",
    "olive", "plenty", "polite", "proud", "quick", "quiet", "rare", "red",
    "rich", "shaggy", "shiny", "short", "silent", "silly", "slimy", "slow",
    "small", "smart", "smooth", "soft", "spicy", "strong", "sweet", "tall",
    "tame", "tasty", "thick", "thin", "tidy", "tiny", "tough", "twelve",
    "warm", "wet", "wicked", "wild", "wise", "witty", "yellow", "young",
)

NOUNS: tuple[str, ...] = (
    "ants", "apes", "apples", "bags", "bananas", "bats", "beans", "bears",
    "bees", "birds", "boats", "books", "boxes", "bugs", "buses", "cameras",
    "carrots", "cars", "cats", "chairs", "cherries", "clouds", "coats",
    "cows", "crabs", "cups", "deers", "dogs", "doors", "dots", "ducks",
    "eagles", "eels", "eggs", "falcons", "fans", "feet", "files", "fishes",
    "flies", "foxes", "frogs", "geckos", "ghosts", "goats", "grapes", "hats",
    "hornets", "horses", "houses", "islands", "jars", "jeans", "keys",
    "kids", "kings", "kiwis", "knives", "lamps", "lemons", "lies", "lions",
    "llamas", "mails", "maps", "mice", "monkeys", "moons", "moose", "news",
    "olives", "owls", "pandas", "pans", "papayas", "parents", "pears",
    "pens", "pets", "pianos", "pigs", "pillows", "planes", "plants", "poets",
    "points", "queens", "rabbits", "rats", "rings", "rivers", "rocks",
    "roses", "schools", "seals", "sheep", "shirts", "shoes", "snails",
    "socks", "spiders", "spoons", "stars", "suns", "swans", "tables",
    "taxes", "teeth", "tigers", "tips", "toes", "tools", "toys", "trains",
    "trees", "turkeys", "walls", "waves", "weeks", "wings", "wolves", "worms",
    "years", "zebras",
)

VERBS: tuple[str, ...] = (
    "accept", "act", "add", "agree", "allow", "applaud", "approve", "argue",
    "arrive", "attack", "attend", "bake", "battle", "beam", "beg", "behave",
    "bathe", "begin", "belong", "bet", "bow", "brake", "breathe", "brush",
    "build", "burn", "buy", "call", "camp", "care", "carry", "change",
    "chew", "clap", "clean", "collect", "compare", "complain", "confess",
    "cough", "count", "cover", "crash", "cross", "cry", "dance", "decide",
    "deliver", "deny", "destroy", "divide", "draw", "dream", "dress", "drive",
    "drop", "eat", "enjoy", "exercise", "explain", "explode", "fail", "fetch",
    "film", "fix", "flash", "float", "flow", "fly", "fold", "give", "glow",
    "grab", "greet", "grin", "grow", "guess", "hammer", "hang", "happen",
    "heal", "help", "hide", "hope", "hug", "hunt", "invent", "itch", "jam",
    "jog", "join", "joke", "judge", "juggle", "jump", "kick", "kiss", "kneel",
    "knock", "know", "laugh", "lay", "lead", "learn", "leave", "lick", "lie",
    "listen", "live", "look", "love", "march", "mate", "matter", "melt",
    "mix", "move", "nail", "notice", "obey", "occur", "own", "pay", "peel",
    "play", "poke", "pretend", "promise", "protect", "provide", "pull",
    "punch", "push", "raise", "rescue", "rest", "return", "relax", "remain",
    "repair", "reply", "report", "retire", "rhyme", "roll", "rule", "run",
    "rush", "sell", "search", "send", "serve", "shake", "share", "shave",
    "shine", "shop", "shout", "show", "sin", "sing", "sink", "sip", "sit",
    "sleep", "slide", "smash", "smell", "smile", "sneeze", "sniff", "sort",
    "speak", "stand", "start", "stay", "stick", "sting", "study", "swim",
    "switch", "talk", "taste", "teach", "tease", "tell", "thank", "think",
    "tickle", "tie", "travel", "trade", "train", "try", "turn",
    "type", "unite", "vanish", "visit", "wait", "walk", "warn", "wash",
    "watch", "wave", "whisper", "win", "wink", "wonder", "work", "worry",
    "yawn", "yell",
)


def human_id(separator: str = "-", rng: random.Random | None = None) -> str:
    """adjective + noun + verb，全部小写。"""
    chooser = rng or random.Random()
    words = [chooser.choice(ADJECTIVES), chooser.choice(NOUNS), chooser.choice(VERBS)]
    return separator.join(words)
