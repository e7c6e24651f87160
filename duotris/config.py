"""Shared constants for Duotris. All game-wide configuration lives here."""

# --- Display ---
FPS = 60
CELL_RENDER_SIZE = 28  # pixels per board cell
SIDEBAR_WIDTH = 180    # pixels to the right of the board
SCREEN_MARGIN = 20

# --- Board ---
BOARD_WIDTH = 10
BOARD_HEIGHT = 20
BOARD_SIZE = BOARD_WIDTH * BOARD_HEIGHT

# --- Timing ---
INITIAL_FALL_DELAY_MS = 1000
MIN_FALL_DELAY_MS = 100
LEVEL_SPEED_REDUCTION_MS = 50
LINES_PER_LEVEL = 10

# --- Scoring ---
INITIAL_LEVEL = 1
LINE_CLEAR_SCORES = (0, 100, 300, 500, 800)  # indexed by lines cleared at once
SCORE_SOFT_DROP = 1   # per cell
SCORE_HARD_DROP = 2   # per cell

# --- Networking ---
DEFAULT_PORT = 5555
MAX_PEERS = 2
RECV_BUFFER_SIZE = 1024       # bytes per recv() and largest encodable message
HEARTBEAT_INTERVAL_MS = 1000
HOST_POLL_TIMEOUT_S = 0.010   # readiness check bound per host tick
CLIENT_POLL_TIMEOUT_S = 0.005  # readiness check bound per client tick
SNAPSHOT_RATE = 20            # GameState broadcasts per second
PLAYER_NAME_MAX_BYTES = 16

# --- Colors (one per tetromino, cell value - 1) ---
COLOR_BG = (18, 18, 28)
COLOR_GRID = (40, 40, 56)
COLOR_TEXT = (210, 210, 210)
COLOR_WARNING = (220, 80, 60)
PIECE_COLORS = (
    (0, 240, 240),   # I
    (240, 240, 0),   # O
    (0, 240, 0),     # S
    (240, 0, 0),     # Z
    (0, 0, 240),     # J
    (240, 160, 0),   # L
    (160, 0, 240),   # T
)
