#!/usr/bin/env python3
"""
Main entry point for the SkillProbe interview room.
Allows running the package with: python -m skillprobe --role="Backend Engineer"
"""
import asyncio
import sys
import threading

from .config import get_config, VOICE_NAME, LANGUAGE_CODE, VOICE_OPTIONS, LANGUAGE_OPTIONS
from .infrastructure.llm import LiveDialogueClient
from .interview import (
    InterviewSession, Settings, SessionPhase, InterviewEventBus, EventLogger,
    SessionMetrics, SessionEventType, InterviewRecordService, LocalInterviewRecords
)
from .utils import setup_logging

NOTICE_ICONS = {"success": "✅", "info": "ℹ️ ", "error": "❌"}

HELP = """Commands:
  r  start/stop recording
  s  show status
  e  end the interview and get feedback
  b  leave without feedback"""


def _print_notice(event) -> None:
    icon = NOTICE_ICONS.get(event.data["level"], "•")
    print(f"{icon} {event.data['message']}")


def build_event_bus():
    """Event bus for the console: log file, printed notices and session counters."""
    event_bus = InterviewEventBus()
    metrics = SessionMetrics()
    event_bus.subscribe_all(EventLogger().handle_event)
    event_bus.subscribe_all(metrics.handle_event)
    event_bus.subscribe(SessionEventType.NOTICE, _print_notice)
    return event_bus, metrics


def format_summary(metrics: SessionMetrics) -> str:
    counts = metrics.get_metrics()
    outcome = "ended" if counts["sessions_ended"] else "errored" if counts["sessions_errored"] else "left"
    return (f"📊 Session {outcome}: {counts['turns_received']} interviewer turns, "
            f"{counts['recording_toggles']} recording toggles")


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue) -> None:
    # Daemon thread so a pending readline never blocks interpreter exit
    def read():
        for line in sys.stdin:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        loop.call_soon_threadsafe(lines.put_nowait, None)

    threading.Thread(target=read, name="stdin-reader", daemon=True).start()


async def run_console(settings: Settings, config) -> int:
    """Run one interview from the terminal. Returns the process exit code."""
    if config.uses_backend:
        records = InterviewRecordService(config.api_base_url, config.api_auth_token, config.api_timeout)
    else:
        records = LocalInterviewRecords(config.gemini_api_key)

    try:
        grant = await records.create_session(settings)
    except RuntimeError as e:
        print(f"❌ Could not create interview session: {e}")
        return 1

    event_bus, metrics = build_event_bus()

    session = InterviewSession(
        settings,
        LiveDialogueClient(grant.token, model=config.live_model, api_version=config.live_api_version),
        records=records,
        interview_id=grant.interview_id,
        event_bus=event_bus,
    )

    try:
        return await _run_room(session, settings)
    finally:
        print(format_summary(metrics))


async def _run_room(session: InterviewSession, settings: Settings) -> int:
    async with session:
        print(f"🔌 Connecting interview for {settings.job_role}...")
        await session.start()
        if session.phase != SessionPhase.ACTIVE:
            print(f"❌ {session.error}")
            return 1

        print(HELP)
        lines: asyncio.Queue = asyncio.Queue()
        _start_stdin_reader(asyncio.get_running_loop(), lines)

        while session.phase == SessionPhase.ACTIVE:
            try:
                line = await asyncio.wait_for(lines.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            command = (line or "e").strip().lower()
            if command == "r":
                session.toggle_recording()
            elif command == "s":
                snap = session.snapshot()
                mic = "🎙️ recording" if snap.is_recording else "🔇 muted"
                voice = "🗣️ speaking" if snap.is_speaking else "..."
                print(f"⏱️  {snap.duration_display} | {snap.connection} | {mic} | {voice} | {snap.message_count} messages")
            elif command == "e":
                feedback = await session.end()
                if feedback is not None:
                    print(f"\n📋 Overall: {feedback.overall_rating.value}")
                    print(f"💪 Strengths: {feedback.strengths}")
                    print(f"🔧 Improvements: {feedback.improvements}")
                    print(f"📝 {feedback.summary}")
            elif command == "b":
                await session.back()
                print("👋 Left the interview room")
            elif command:
                print(HELP)

        if session.phase == SessionPhase.ERRORED:
            print(f"❌ {session.error}")
            return 1
    return 0


def main():
    """Command-line interface for the interview room."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    job_role = config.job_role
    voice_name = VOICE_NAME
    language_code = LANGUAGE_CODE
    enable_audio = config.enable_audio
    enable_video = config.enable_video
    for arg in sys.argv[1:]:
        if arg.startswith("--role="):
            job_role = arg.split("=", 1)[1]
        elif arg.startswith("--voice="):
            voice_name = arg.split("=", 1)[1]
        elif arg.startswith("--language="):
            language_code = arg.split("=", 1)[1]
        elif arg == "--no-audio":
            enable_audio = False
        elif arg == "--no-video":
            enable_video = False
        else:
            print(f"❌ Unknown argument: {arg}")
            print("   Usage: python -m skillprobe --role=\"Backend Engineer\" "
                  "[--voice=Zephyr] [--language=en-US] [--no-audio] [--no-video]")
            sys.exit(1)

    settings = Settings(
        job_role=job_role,
        voice_name=voice_name,
        language_code=language_code,
        enable_audio=enable_audio,
        enable_video=enable_video,
    )
    try:
        settings.validate()
    except ValueError as e:
        print(f"❌ {e}")
        print(f"   Voices: {', '.join(VOICE_OPTIONS)}")
        print(f"   Languages: {', '.join(LANGUAGE_OPTIONS)}")
        sys.exit(1)

    log_file = setup_logging(config.log_file, config.log_level)
    print(f"🎤 Interviewer voice: {VOICE_OPTIONS[voice_name]}")
    print(f"🌐 Language: {LANGUAGE_OPTIONS[language_code]}")
    print(f"📄 Detailed log: {log_file}")

    try:
        code = asyncio.run(run_console(settings, config))
    except KeyboardInterrupt:
        print("\n👋 Interview interrupted")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
