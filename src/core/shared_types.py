"""
Type definitions used across layers
"""

from enum import StrEnum


class RoomStatus(StrEnum):
    LOBBY = "lobby"
    PLAYING = "playing"
    FINISHED = "finished"


# NOTE values are the names clients send over the wire, hence camelCase for the lower section
class Category(StrEnum):
    ONES = "ones"
    TWOS = "twos"
    THREES = "threes"
    FOURS = "fours"
    FIVES = "fives"
    SIXES = "sixes"
    THREE_OF_A_KIND = "threeOfAKind"
    FOUR_OF_A_KIND = "fourOfAKind"
    FULL_HOUSE = "fullHouse"
    SMALL_STRAIGHT = "smallStraight"
    LARGE_STRAIGHT = "largeStraight"
    YAHTZEE = "yahtzee"
    CHANCE = "chance"


class QuitAction(StrEnum):
    LEFT = "left"
    FINISHED = "finished"


class EventType(StrEnum):
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    GAME_STARTED = "game_started"
    DICE_ROLL = "dice_roll"
    SCORE_UPDATE = "score_update"
    TURN_SKIPPED = "turn_skipped"
    GAME_END = "game_end"
    PRESENCE = "presence"
