import json
import logging
import os

from colorama import Fore, Style
from colorama import init as colorama_init
from dotenv import load_dotenv

# Early .env load to check DISABLE_CLOUD_TELEMETRY before importing any OTel
if os.path.isfile(".env"):
    load_dotenv(override=False)

_telemetry_disabled = os.getenv("DISABLE_CLOUD_TELEMETRY", "false").lower() == "true"

if not _telemetry_disabled:
    from opentelemetry import trace
else:
    trace = None

colorama_init(autoreset=True)

# Define a new logging level named "KEYINFO" with a level of 25
KEYINFO_LEVEL_NUM = 25
logging.addLevelName(KEYINFO_LEVEL_NUM, "KEYINFO")


def keyinfo(self: logging.Logger, message, *args, **kws):
    if self.isEnabledFor(KEYINFO_LEVEL_NUM):
        self._log(KEYINFO_LEVEL_NUM, message, args, **kws)


logging.Logger.keyinfo = keyinfo


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "name": record.name,
            "process": record.processName,
            "level": record.levelname,
            "trace_id": getattr(record, "trace_id", "-"),
            "span_id": getattr(record, "span_id", "-"),
            "session_id": getattr(record, "session_id", "-"),
            "agent_name": getattr(record, "agent_name", "-"),
            "transport_type": getattr(record, "transport_type", "-"),
            "message": record.getMessage(),
            "file": record.filename,
            "function": record.funcName,
            "line": record.lineno,
        }

        for attr_name in dir(record):
            if attr_name.startswith(("session_", "agent_", "event_", "item_")):
                value = getattr(record, attr_name)
                if isinstance(value, (str, int, float, bool)):
                    log_record[attr_name] = value

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


class PrettyFormatter(logging.Formatter):
    LEVEL_COLORS = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.MAGENTA,
        "KEYINFO": Fore.BLUE,
    }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, self.datefmt)
        level = record.levelname
        name = record.name
        msg = record.getMessage()

        color = self.LEVEL_COLORS.get(level, "")
        line = f"{Fore.WHITE}[{timestamp}]{Style.RESET_ALL} {color}{level}{Style.RESET_ALL} - {Fore.BLUE}{name}{Style.RESET_ALL}: {msg}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


# Streaming event types that arrive once per token; debug lines about them are dropped
_NOISY_EVENT_TYPES = (
    "response.audio.delta",
    "response.audio_transcript.delta",
    "response.text.delta",
    "input_audio_transcription.delta",
)


class StreamingNoiseFilter(logging.Filter):
    """
    Filter that drops per-delta DEBUG chatter from the realtime event stream.

    A single assistant turn produces hundreds of delta events. INFO and above
    are always kept.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno > logging.DEBUG:
            return True
        try:
            msg = record.getMessage()
        except Exception:
            return True
        if not msg or not msg.strip():
            return False
        return not any(event_type in msg for event_type in _NOISY_EVENT_TYPES)


class TraceLogFilter(logging.Filter):
    """
    Logging filter that enriches log records with session correlation and trace context.

    Correlation is sourced in priority order:
    1. Session context (contextvars) - set by the session controller
    2. Default values ("-") - when no context available
    """

    def filter(self, record):
        if _telemetry_disabled or trace is None:
            record.trace_id = "-"
            record.span_id = "-"
        else:
            span = trace.get_current_span()
            context = span.get_span_context() if span else None
            record.trace_id = f"{context.trace_id:032x}" if context and context.trace_id else "-"
            record.span_id = f"{context.span_id:016x}" if context and context.span_id else "-"

        try:
            from utils.session_context import get_session_correlation

            session_ctx = get_session_correlation()
        except ImportError:
            session_ctx = None

        if session_ctx:
            for key, value in session_ctx.to_log_record().items():
                setattr(record, key, value)
        else:
            record.session_id = "-"
            record.agent_name = "-"
            record.transport_type = "-"

        return True


def get_logger(
    name: str = "rtconsole",
    level: int | None = None,
    include_stream_handler: bool = True,
) -> logging.Logger:
    """
    Get or create a logger with correlation filters and a console handler.

    Args:
        name: Logger name (hierarchical, e.g., "realtime.engine")
        level: Optional logging level; defaults to LOG_LEVEL env or INFO if logger has no level set
        include_stream_handler: Whether to add a console StreamHandler

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if level is not None or logger.level == 0:
        env_level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        logger.setLevel(level or (env_level if isinstance(env_level, int) else logging.INFO))

    is_production = os.environ.get("ENV", "dev").lower() == "prod"

    if not any(isinstance(f, TraceLogFilter) for f in logger.filters):
        logger.addFilter(TraceLogFilter())

    if not any(isinstance(f, StreamingNoiseFilter) for f in logger.filters):
        logger.addFilter(StreamingNoiseFilter())

    if include_stream_handler and not any(
        isinstance(h, logging.StreamHandler) for h in logger.handlers
    ):
        sh = logging.StreamHandler()
        sh.setFormatter(JsonFormatter() if is_production else PrettyFormatter())
        sh.addFilter(TraceLogFilter())
        logger.addHandler(sh)

    return logger
