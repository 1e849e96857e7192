"""
Timer Engine: the focus stopwatch / countdown.

``FocusTimer`` is a plain state machine (idle, running, paused) over one
display counter: a stopwatch counts up from zero, a timer counts down from
``duration_minutes``. It never touches the profile; a finished session is
folded in through the ``session/commit`` action once the user confirms it.

``TimerDriver`` supplies the one-second wakeup as an APScheduler interval
job that exists only while the timer is running.
"""

from __future__ import annotations

import io
import logging
import threading
from collections.abc import Callable
from datetime import date
from typing import Any

from apscheduler.jobstores.base import JobLookupError
from PIL import Image, ImageColor, ImageDraw, ImageFont

from interactions import PendingAction, PendingActions
from profile_store import ProfileStore

logger = logging.getLogger(__name__)

STOPWATCH = "stopwatch"
TIMER = "timer"
MODES = (STOPWATCH, TIMER)

IDLE = "idle"
RUNNING = "running"
PAUSED = "paused"

DEFAULT_DURATION_MINUTES = 60
# Sessions at or below this are discarded without asking
MIN_SAVE_SECONDS = 60
SAVE_SESSION = "save_session"

IDLE_TITLE = "PrepPilot Pro"
FINISHED_NOTICE = "Timer Finished!"


class TimerError(ValueError):
    pass


class FloatingDisplayError(RuntimeError):
    pass


def format_clock(seconds: int) -> str:
    """MM:SS, with an H: prefix once past the hour."""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"


class FocusTimer:
    def __init__(self, subject: str = "Physics", duration_minutes: int = DEFAULT_DURATION_MINUTES) -> None:
        self.mode = STOPWATCH
        self.state = IDLE
        self.duration_minutes = duration_minutes
        self.subject = subject
        self.seconds = 0
        self.notice = ""
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.state == RUNNING

    def set_mode(self, mode: str) -> None:
        if mode not in MODES:
            raise TimerError(f"Unknown timer mode: {mode}")
        with self._lock:
            if self.state == RUNNING:
                raise TimerError("Pause the timer before switching mode.")
            self.mode = mode
            self.state = IDLE
            self.seconds = self.duration_minutes * 60 if mode == TIMER else 0

    def set_duration(self, minutes: Any) -> None:
        try:
            minutes = int(minutes)
        except (TypeError, ValueError):
            raise TimerError("Duration must be a whole number of minutes.") from None
        if minutes <= 0:
            raise TimerError("Duration must be positive.")
        with self._lock:
            self.duration_minutes = minutes
            if self.mode == TIMER and self.state == IDLE:
                self.seconds = minutes * 60

    def set_subject(self, subject: str) -> None:
        with self._lock:
            self.subject = subject

    def start(self) -> None:
        with self._lock:
            if self.state == RUNNING:
                return
            if self.mode == TIMER and self.seconds <= 0:
                self.seconds = self.duration_minutes * 60
            self.state = RUNNING
            self.notice = ""

    def pause(self) -> None:
        with self._lock:
            if self.state == RUNNING:
                self.state = PAUSED

    def tick(self) -> bool:
        """Advance one second. True when a countdown has just finished."""
        with self._lock:
            if self.state != RUNNING:
                return False
            if self.mode == STOPWATCH:
                self.seconds += 1
                return False
            self.seconds = max(0, self.seconds - 1)
            if self.seconds == 0:
                self.state = IDLE
                self.notice = FINISHED_NOTICE
                return True
            return False

    @property
    def elapsed_seconds(self) -> int:
        if self.mode == STOPWATCH:
            return self.seconds
        return max(0, self.duration_minutes * 60 - self.seconds)

    def stop(self) -> int:
        """Halt the timer and report how long the session ran."""
        with self._lock:
            self.state = IDLE
        return self.elapsed_seconds

    def reset(self) -> None:
        with self._lock:
            self.state = IDLE
            self.seconds = 0

    def title(self, app_name: str = "PrepPilot") -> str:
        if self.state == RUNNING:
            return f"({format_clock(self.seconds)}) {app_name}"
        return IDLE_TITLE

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "state": self.state,
            "subject": self.subject,
            "durationMinutes": self.duration_minutes,
            "seconds": self.seconds,
            "display": format_clock(self.seconds),
            "elapsed": self.elapsed_seconds,
            "title": self.title(),
            "notice": self.notice,
        }


class TimerDriver:
    """Ticks a FocusTimer once a second on a scheduler while it runs."""

    JOB_PREFIX = "focus-timer:"

    def __init__(self, timer: FocusTimer, scheduler: Any, key: str,
                 on_complete: Callable[[], None] | None = None) -> None:
        self.timer = timer
        self._scheduler = scheduler
        self._job_id = f"{self.JOB_PREFIX}{key}"
        self._on_complete = on_complete

    def start(self) -> None:
        self.timer.start()
        self._scheduler.add_job(
            self._tick,
            trigger="interval",
            seconds=1,
            id=self._job_id,
            replace_existing=True,
        )

    def pause(self) -> None:
        self.timer.pause()
        self.halt()

    def halt(self) -> None:
        try:
            self._scheduler.remove_job(self._job_id)
        except JobLookupError:
            pass

    def _tick(self) -> None:
        finished = self.timer.tick()
        if finished or not self.timer.running:
            self.halt()
        if finished:
            logger.info("Countdown finished (%s)", self._job_id)
            if self._on_complete is not None:
                self._on_complete()


def request_stop(driver: TimerDriver, store: ProfileStore, pending: PendingActions,
                 today: Callable[[], date] = date.today) -> PendingAction | None:
    """Stop the timer; ask before saving anything longer than a minute.

    Accepting commits the session and zeroes the display, declining leaves
    the display as it was. Short sessions are discarded straight away.
    Stopping an idle timer whose save prompt is still open returns that
    prompt instead of asking again.
    """
    timer = driver.timer
    if timer.state == IDLE:
        open_prompt = pending.find(SAVE_SESSION)
        if open_prompt is not None:
            return open_prompt

    driver.halt()
    elapsed = timer.stop()
    if elapsed <= MIN_SAVE_SECONDS:
        timer.reset()
        return None

    subject = timer.subject
    seconds = timer.seconds

    def save() -> dict:
        if timer.state != IDLE or timer.seconds != seconds:
            logger.info("Timer moved on since stop; not saving %d s", elapsed)
            return {"saved": 0}
        store.dispatch("session/commit", subject=subject, seconds=elapsed, today=today())
        timer.reset()
        logger.info("Saved %d s of %s", elapsed, subject)
        return {"saved": elapsed}

    return pending.request(SAVE_SESSION, f"Save {elapsed // 60} minutes of study?", save)


def render_floating_frame(text: str, colour: str = "#8b5cf6", size: tuple[int, int] = (320, 180)) -> bytes:
    """Draw the clock text onto a small PNG for the floating window."""
    try:
        fill = ImageColor.getrgb(colour)
        width, height = size
        img = Image.new("RGB", size, (17, 17, 17))
        draw = ImageDraw.Draw(img)
        draw.rounded_rectangle([0, 0, width - 1, height - 1], radius=height // 8, outline=fill, width=4)

        try:
            font = ImageFont.truetype("DejaVuSans-Bold.ttf", height // 3)
        except (IOError, OSError):
            font = ImageFont.load_default()

        bbox = draw.textbbox((0, 0), text, font=font)
        tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
        draw.text(((width - tw) // 2, (height - th) // 2), text, fill=fill, font=font)

        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()
    except (ValueError, OSError) as e:
        raise FloatingDisplayError(str(e)) from e
