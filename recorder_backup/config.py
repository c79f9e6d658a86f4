"""
Configuration constants for the recorder backup tool.
"""
from pathlib import Path

# --- File Type Definitions ---
VIDEO_EXTS = {'.mp4', '.mov', '.avi', '.mkv', '.webm'}

# Container every transcoded file ends up in
OUTPUT_EXT = '.mp4'

# Folder on the device volume that holds the recordings
SOURCE_SUBFOLDER = "DCIM"

# Top-level folders that identify a mounted volume as the recorder
MARKER_FOLDERS = ("DCIM", "MISC", "RECORD")

# --- Device Application Labels ---
# Matched as whole words, case/accent-insensitive, earlier labels win. Keep lowercase.
CONNECT_LABELS = ("connect", "conectar", "connexion", "verbinden", "collega", "ligar")
LOGIN_LABELS = ("login", "log in", "sign in", "entrar", "iniciar sesion", "se connecter", "anmelden", "accedi", "ok")
PASSWORD_LABELS = ("password", "passwd", "contrasena", "clave", "mot de passe", "passwort", "senha", "pin")
STORAGE_LABELS = ("usb", "storage", "mass storage", "u disk", "almacenamiento", "stockage", "speicher", "disco")
CLOCK_SYNC_LABELS = ("sync time", "time sync", "synchronize", "set time", "sincronizar", "synchroniser", "zeit")
CONFIRM_LABELS = ("ok", "yes", "close", "aceptar", "si", "oui", "ja", "sim", "cerrar", "fermer", "schliessen")

# --- Modal Classification Keywords ---
# Checked in this order: auth failure, already connected, generic error, success.
AUTH_FAILED_KEYWORDS = (
    "password error", "wrong password", "incorrect password", "invalid password",
    "authentication failed", "login failed", "contrasena incorrecta", "clave incorrecta",
    "mot de passe incorrect", "falsches passwort", "senha incorreta",
)
ALREADY_CONNECTED_KEYWORDS = (
    "already connected", "already in use", "ya conectado", "ya esta conectado",
    "deja connecte", "bereits verbunden", "ja conectado",
)
ERROR_KEYWORDS = (
    "error", "fail", "failed", "unable", "cannot", "timeout", "not found",
    "fallo", "fallido", "erreur", "echec", "fehler", "erro",
)
SUCCESS_KEYWORDS = (
    "success", "successful", "succeeded", "complete", "completed",
    "exito", "correcto", "reussi", "erfolgreich", "sucesso",
)

# --- Acquisition Timing (seconds) ---
UI_TIMEOUT = 20.0
DRIVE_TIMEOUT = 30.0
MODAL_TIMEOUT = 3.0
CLOSE_GRACE = 5.0
UI_POLL_INTERVAL = 0.15
VOLUME_POLL_INTERVAL = 0.5
MAX_AUTH_RETRIES = 3

# --- Transcoding ---
FFMPEG_BIN = "ffmpeg"
FFPROBE_BIN = "ffprobe"
PROGRESS_POLL_INTERVAL = 1.0

# Encoder preference: compression efficiency first, hardware throughput second.
# (encoder, vendor, output codec family)
ENCODER_PREFERENCE = [
    ("hevc_nvenc", "nvidia", "hevc"),
    ("hevc_qsv", "intel", "hevc"),
    ("hevc_amf", "amd", "hevc"),
    ("libx265", None, "hevc"),
    ("h264_nvenc", "nvidia", "h264"),
    ("h264_qsv", "intel", "h264"),
    ("h264_amf", "amd", "h264"),
    ("libx264", None, "h264"),
]

ENCODER_FLAGS = {
    "hevc_nvenc": ["-preset", "p5", "-rc", "vbr", "-cq", "28", "-b:v", "0", "-tag:v", "hvc1"],
    "hevc_qsv": ["-preset", "medium", "-global_quality", "28", "-tag:v", "hvc1"],
    "hevc_amf": ["-quality", "balanced", "-rc", "cqp", "-qp_i", "28", "-qp_p", "28", "-tag:v", "hvc1"],
    "libx265": ["-preset", "medium", "-crf", "28", "-tag:v", "hvc1"],
    "h264_nvenc": ["-preset", "p5", "-rc", "vbr", "-cq", "23", "-b:v", "0"],
    "h264_qsv": ["-preset", "medium", "-global_quality", "23"],
    "h264_amf": ["-quality", "balanced", "-rc", "cqp", "-qp_i", "23", "-qp_p", "23"],
    "libx264": ["-preset", "medium", "-crf", "23"],
}

# Hardware decoders by vendor and input codec family. AMD has no ffmpeg decoder.
HW_DECODERS = {
    "nvidia": {
        "h264": "h264_cuvid", "hevc": "hevc_cuvid", "mpeg4": "mpeg4_cuvid",
        "mpeg2video": "mpeg2_cuvid", "vp9": "vp9_cuvid", "av1": "av1_cuvid", "vc1": "vc1_cuvid",
    },
    "intel": {
        "h264": "h264_qsv", "hevc": "hevc_qsv", "mpeg2video": "mpeg2_qsv",
        "vp9": "vp9_qsv", "av1": "av1_qsv", "vc1": "vc1_qsv",
    },
}
DECODER_VENDOR_ORDER = ("nvidia", "intel")

# Codec names reported by ffprobe/MediaInfo -> family
CODEC_FAMILIES = {
    "h264": "h264", "avc": "h264", "avc1": "h264",
    "hevc": "hevc", "h265": "hevc", "hvc1": "hevc", "hev1": "hevc",
    "mpeg4": "mpeg4", "mpeg-4 visual": "mpeg4",
    "mpeg2video": "mpeg2video", "mpeg video": "mpeg2video",
    "vp9": "vp9", "av1": "av1", "vc1": "vc1", "vc-1": "vc1",
}

# Downscale to a 720-pixel short edge only when larger, keep aspect ratio
VIDEO_FILTER = (
    "scale='if(gt(iw,ih),-2,min(720,iw))':'if(gt(iw,ih),min(720,ih),-2)'"
    ":flags=lanczos,format=yuv420p"
)
AUDIO_FLAGS = [
    "-c:a", "aac", "-b:a", "192k",
    "-af", "acompressor=threshold=-21dB:ratio=4:attack=20:release=250",
]

# Near-uniform duration tolerance for the ETA model
UNIFORM_SPREAD_SECONDS = 2.0
UNIFORM_SPREAD_RATIO = 0.03

# --- Retention ---
RETENTION_DAYS = 60
YES_TOKENS = {"y", "yes", "s", "si", "sí", "o", "oui", "j", "ja"}

# --- Output ---
LOG_FILE_NAME = "recorder_backup.log"
DEFAULT_OUTPUT_DIR = Path.home() / "RecorderBackup"
