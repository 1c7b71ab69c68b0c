"""
Street Art CTF game engine.
Pure state transitions: catalog, scoring, capture reducer, achievements.
"""

# Approximate meters per degree of latitude (equirectangular projection)
METERS_PER_DEGREE = 111000

# Bonus rates are fractions of the art's base points
STREAK_BONUS_RATE = 0.10
STREAK_BONUS_MAX_RATE = 1.00
RECAPTURE_BONUS_RATE = 0.50
FIRST_CAPTURE_BONUS_RATE = 0.25
SPEED_BONUS_RATE = 0.20
SPEED_BONUS_WINDOW_MINUTES = 5

# Distance bonus: +5 per 100m travelled since the last capture, over 50m, capped at 50
DISTANCE_BONUS_MIN_METERS = 50
DISTANCE_BONUS_PER_100M = 5
DISTANCE_BONUS_MAX = 50

# Capture hour flags used by achievements (local time)
EARLY_CAPTURE_BEFORE_HOUR = 7
NIGHT_CAPTURE_FROM_HOUR = 22

TEAMS = ["red", "blue"]
GAME_MODES = ["solo", "battle"]
