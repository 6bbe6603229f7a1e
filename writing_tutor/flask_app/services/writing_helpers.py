"""Static helpers shown beside the editor: section tips and topic word banks."""
from __future__ import annotations

from typing import List

SECTION_TIPS = {
    'hook': [
        "Start with a question that makes readers curious!",
        "Share an amazing fact about your topic.",
        "Use words like 'Did you know...' or 'Imagine...' to grab attention.",
        "Tell a short story or give an example.",
    ],
    'body': [
        "Add facts and details about your topic.",
        "Use words like 'first,' 'next,' 'also,' and 'because' to connect ideas.",
        "Explain WHY each fact is important.",
        "Give examples to help readers understand.",
    ],
    'conclusion': [
        "Remind readers what your writing was about.",
        "Tell them why your topic is important.",
        "End with a question or interesting thought.",
        "Use words like 'In conclusion...' or 'Remember...'",
    ],
}

WORD_BANKS = {
    'butterflies': ["butterfly", "wings", "colorful", "fly", "caterpillar", "metamorphosis", "beautiful", "insect",
                    "pattern", "delicate", "transform", "chrysalis", "emerge", "flutter", "migrate"],
    'animals': ["animal", "species", "habitat", "wild", "nature", "predator", "prey", "mammal", "bird", "reptile",
                "behavior", "survive", "adapt", "ecosystem", "endangered"],
    'plants': ["plant", "flower", "stem", "leaf", "root", "grow", "soil", "sunlight", "water", "seed", "bloom",
               "photosynthesis", "nature", "garden", "green"],
    'weather': ["weather", "rain", "cloud", "sun", "wind", "storm", "temperature", "forecast", "climate", "thunder",
                "lightning", "snow", "hail", "fog", "breeze"],
    'ocean': ["ocean", "water", "fish", "coral", "wave", "sea", "marine", "creature", "deep", "current", "reef",
              "whale", "dolphin", "shell", "tide"],
    'space': ["space", "star", "planet", "moon", "galaxy", "astronaut", "rocket", "universe", "orbit", "gravity",
              "telescope", "comet", "asteroid", "solar", "cosmic"],
    'dinosaurs': ["dinosaur", "fossil", "extinct", "prehistoric", "reptile", "roar", "massive", "ancient", "species",
                  "paleontologist", "excavate", "skeleton", "Tyrannosaurus", "Triceratops", "Stegosaurus"],
}
DEFAULT_WORD_BANK = ["interesting", "amazing", "beautiful", "important", "special", "different", "unique",
                     "wonderful", "fascinating", "incredible", "remarkable", "outstanding", "excellent", "fantastic",
                     "awesome"]


def get_tips(section: str) -> List[str]:
    """Tips for a wizard section; unknown sections get the body tips."""
    return list(SECTION_TIPS.get(section, SECTION_TIPS['body']))


def get_word_bank(topic: str | None) -> List[str]:
    """First word bank whose key appears in the topic, else a general list."""
    topic_lower = (topic or '').lower()
    for key, words in WORD_BANKS.items():
        if key in topic_lower:
            return list(words)
    return list(DEFAULT_WORD_BANK)


def count_word_bank_hits(text: str | None, topic: str | None) -> int:
    """Number of distinct word-bank words the text uses."""
    if not text:
        return 0
    tokens = {token.strip('.,!?;:"\'()').lower() for token in text.split()}
    return sum(1 for word in get_word_bank(topic) if word.lower() in tokens)
