"""Prompt and fallback text for the weather report."""

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple, Sequence


class Greeting(NamedTuple):
    greeting: str
    day_name: str
    hour: int


def local_greeting(now: datetime) -> Greeting:
    """Time-of-day greeting and weekday name for ``now`` (already in the report timezone)."""
    hour = now.hour
    if 5 <= hour < 11:
        greeting = "Good morning"
    elif 11 <= hour < 15:
        greeting = "Good afternoon"
    elif 15 <= hour < 19:
        greeting = "Good evening"
    else:
        greeting = "Good night"
    return Greeting(greeting=greeting, day_name=now.strftime("%A"), hour=hour)


def build_analysis_prompt(labels: Sequence[str], greeting: str, day_name: str, region: str) -> str:
    locations = "\n".join(f"{i}. {label}" for i, label in enumerate(labels, start=1))
    return f"""You are looking at {len(labels)} traffic camera images from {region}, one per location:
{locations}

For each image decide which condition applies:
- RAINING: rain streaks in the air, droplets on the lens, hazy low visibility, spray from vehicles.
- WET: shiny or reflective roads, puddles, wet surfaces, but no falling rain and good visibility.
- DRY: dull dry road surface, no puddles, clear visibility.
Umbrellas alone are not evidence of rain; people also use them against the sun.

Then write one short, friendly paragraph for readers in {region}. Open with "{greeting}" and
mention that today is {day_name}. Name the locations that are raining, wet or dry, speak to the
reader directly, and end with practical advice about umbrellas or footwear when relevant.
No title or header, just the paragraph."""


def build_fallback_text(day_name: str, region: str) -> str:
    """Deterministic report used when the model cannot be reached."""
    return (
        f"Hello! Sorry, we couldn't analyze today's ({day_name}) weather conditions in {region} "
        "because of a technical problem. The camera snapshots above are still current, "
        "so take a look for yourself and check back later for updates!"
    )
