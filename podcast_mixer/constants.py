"""All magic numbers and configuration defaults."""

SAMPLE_RATE = 44100                 # Hz, every stage mixes at this rate
CHANNELS = 2
MP3_BITRATE_KBPS = 128              # fixed output bitrate
MP3_FRAME_SAMPLES = 1152            # samples per channel per MPEG-1 Layer III frame
MIN_COMPRESSION_RATIO = 2.0         # encoded MP3 must be at least this much smaller than raw PCM

# Overlap durations (ms), overridable per episode through MixingSettings
OVERLAP_SHORT_REACTION_MS = 250     # "Mhm!", "Ja!", "Genau!"
OVERLAP_INTERRUPTING_MS = 180       # [interrupting] tag and trail-offs
OVERLAP_AFTER_QUESTION_MS = 80      # quick answer after a question
OVERLAP_SPEAKER_CHANGE_MS = 50      # normal turn-taking
OVERLAP_OVERLAPPING_MS = 500        # explicit (overlapping) annotation
MIN_SEGMENT_FOR_OVERLAP_MS = 300    # shorter segments are never overlapped

# Overlap caps as fractions of the adjacent segment durations
OVERLAPPING_MAX_PREV = 0.40
OVERLAPPING_MAX_CURR = 0.95
REACTION_MAX_PREV = 0.30
REACTION_MAX_CURR = 0.50
INTERRUPT_MAX_PREV = 0.25
QUESTION_MAX_PREV = 0.10
TRAIL_OFF_MAX_PREV = 0.20
SPEAKER_CHANGE_MAX_PREV = 0.05

# Silence detection
SILENCE_THRESHOLD_DBFS = -40.0
KEEP_SILENCE_MS = 30                # natural pause left after trimming

# Crossfade curve exponents
CROSSFADE_OUT_EXPONENT = 1.5        # outgoing speaker: (1 - t) ** 1.5
CROSSFADE_IN_EXPONENT = 0.8         # incoming speaker: t ** 0.8
ADDITIVE_EDGE_FRACTION = 0.15       # edge ramps of an additive overlap window
SOFT_LIMIT_KNEE = 0.8               # linear below, tanh saturation above

# Stereo positions (0 = full left, 1 = full right)
HOST_PAN = 0.35
GUEST_PAN = 0.65

# Parametric intro (seconds, volumes in percent)
INTRO_FULL_SEC = 3.0
INTRO_BED_SEC = 7.0
INTRO_BED_VOLUME = 20
INTRO_FADEOUT_SEC = 3.0
INTRO_DIALOG_FADEIN_SEC = 1.0
INTRO_FADEOUT_CURVE = "exponential"
INTRO_DIALOG_CURVE = "exponential"

# Parametric outro (seconds, volumes in percent)
OUTRO_CROSSFADE_SEC = 10.0
OUTRO_RISE_SEC = 3.0
OUTRO_BED_VOLUME = 20
OUTRO_FINAL_START_SEC = 7.0
OUTRO_RISE_CURVE = "exponential"
OUTRO_FINAL_CURVE = "exponential"

# Envelope solver
BEZIER_MAX_ITERATIONS = 8
BEZIER_TOLERANCE_SEC = 1e-4
BEZIER_MIN_DERIVATIVE = 1e-10

# Large-scale path
LARGE_SCALE_THRESHOLD = 40          # segments; above this, stream instead of mixing in memory
LARGE_SCALE_TAIL_SEGMENTS = 2       # trailing segments mixed in memory with the outro

# Intro/outro assets
ASSET_BASE_URL_ENV = "PODCAST_ASSET_BASE_URL"
DEFAULT_ASSET_BASE_URL = "http://localhost:3000"
INTRO_ASSET_PATH = "/audio/podcast-intro.mp3"
OUTRO_ASSET_PATH = "/audio/podcast-outro.mp3"
FETCH_TIMEOUT_SEC = 30.0

SPEAKERS = ("HOST", "GUEST")
WORDS_PER_MINUTE = 150              # script duration estimate
OUTPUT_FILENAME = "episode.mp3"
MANIFEST_FILENAME = "output.json"
VERSION = "0.1.0"
