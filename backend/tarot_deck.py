"""
MysticRead AI — Tarot Deck
The 78-card Rider-Waite deck, spread layouts and a random draw.
"""

import random
from typing import Optional

MAJOR_ARCANA = [
    "The Fool", "The Magician", "The High Priestess", "The Empress", "The Emperor",
    "The Hierophant", "The Lovers", "The Chariot", "Strength", "The Hermit",
    "Wheel of Fortune", "Justice", "The Hanged Man", "Death", "Temperance",
    "The Devil", "The Tower", "The Star", "The Moon", "The Sun", "Judgement", "The World",
]

SUITS = ["Wands", "Cups", "Swords", "Pentacles"]
RANKS = [
    "Ace", "Two", "Three", "Four", "Five", "Six", "Seven",
    "Eight", "Nine", "Ten", "Page", "Knight", "Queen", "King",
]

MINOR_ARCANA = [f"{rank} of {suit}" for suit in SUITS for rank in RANKS]
ALL_CARDS    = MAJOR_ARCANA + MINOR_ARCANA

SPREAD_POSITIONS = {
    "single-card":  ["Present Situation"],
    "three-card":   ["Past", "Present", "Future"],
    "celtic-cross": [
        "Present Situation", "Challenge", "Distant Past", "Recent Past",
        "Possible Outcome", "Near Future", "Your Approach",
        "External Influences", "Hopes and Fears", "Final Outcome",
    ],
}

REVERSED_CHANCE = 0.3


def suit_of(card_name: str) -> str:
    for suit in SUITS:
        if card_name.endswith(f"of {suit}"):
            return suit
    return "Major Arcana"


def draw_cards(spread_type: str, rng: Optional[random.Random] = None) -> list[dict]:
    """Draw distinct cards for every position of the spread, each reversed with 30% chance."""
    if spread_type not in SPREAD_POSITIONS:
        raise ValueError(f"Unknown spread type '{spread_type}'")
    rng = rng or random.Random()
    positions = SPREAD_POSITIONS[spread_type]
    cards = rng.sample(ALL_CARDS, len(positions))
    return [
        {
            "cardName": name,
            "suit":     suit_of(name),
            "position": position,
            "reversed": rng.random() < REVERSED_CHANCE,
        }
        for name, position in zip(cards, positions)
    ]
