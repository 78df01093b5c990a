from __future__ import annotations

from enum import Enum


class Stream(str, Enum):
    FOOD = "food"
    DRINKS = "drinks"
