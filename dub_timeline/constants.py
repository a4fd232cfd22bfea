"""All magic numbers and configuration constants."""

MIN_STRETCH = 0.5                   # lowest speed ratio a clip is scaled by
MAX_STRETCH = 2.0                   # highest speed ratio; beyond this the clip is truncated
ATEMPO_MIN = 0.5                    # atempo filter accepts factors in [0.5, 2.0]
ATEMPO_MAX = 2.0
TEMPO_TOLERANCE = 1e-4              # residual stage dropped when this close to 1.0
GAP_EPSILON = 0.05                  # seconds; shorter gaps are folded into the next clip
SAMPLE_RATE = 44100                 # common rate for every rendered block
CHANNELS = 2
CHANNEL_LAYOUTS = {1: "mono", 2: "stereo"}  # ffmpeg layout name per channel count
OUTPUT_FORMAT = "mp3"               # container of the finished render
OUTPUT_BITRATE = "192k"             # MP3 output bitrate
EXTRACT_BITRATE = "128k"            # bitrate of audio pulled out of source media
ENGINE_TIMEOUT_SECONDS = 600        # per ffmpeg command
TTS_RETRY_COUNT = 3                 # max retries per TTS segment
TTS_RETRY_BASE_DELAY = 1.0          # seconds; base delay for exponential backoff
TTS_RATE = "+0%"                    # edge-tts relative speech rate
DEFAULT_VOICE = "en-US-AriaNeural"
SYNTHESIS_CONCURRENCY = 4           # simultaneous TTS requests
SAFE_CHARS_PER_SEC = 12             # translated text budget per second of slot
OUTPUT_DIR = "output"
VERSION = "0.1.0"
