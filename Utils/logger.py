import os
import logging
from logging.handlers import TimedRotatingFileHandler, SMTPHandler
import gzip
import glob
import time
import re
from datetime import datetime
from collections import defaultdict
import click
from flask.cli import with_appcontext

LOG_FORMAT = "%(asctime)s [%(levelname)s] in %(module)s: %(message)s"
ACCESS_FORMAT = "%(asctime)s - %(message)s"


def _rotating_handler(path, backup_count, formatter, level):
    handler = TimedRotatingFileHandler(
        path, when="midnight", interval=1, backupCount=backup_count,
        encoding="utf-8", delay=True
    )
    handler.suffix = "%Y-%m-%d"
    handler.setFormatter(formatter)
    handler.setLevel(level)
    handler._fruitpanda = True
    return handler


def _console_handler(formatter):
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.setLevel(logging.INFO)
    handler._fruitpanda = True
    return handler


def _reset(logger):
    # Drop handlers installed by an earlier app instance (tests, reloader)
    for handler in list(logger.handlers):
        if getattr(handler, "_fruitpanda", False):
            logger.removeHandler(handler)
            handler.close()


# ==================================================
# LOGGING SETUP
# ==================================================
def setup_logging(app):
    """Configure logging for the Flask app."""
    log_dir = app.config.get("LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)

    # -------------------------
    # APP + MODULE LOGGERS
    # -------------------------
    # Module loggers (services, utils) propagate here
    root_logger = logging.getLogger()
    _reset(root_logger)
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(_rotating_handler(os.path.join(log_dir, "app.log"), 14, formatter, logging.INFO))
    root_logger.addHandler(_rotating_handler(os.path.join(log_dir, "error.log"), 30, formatter, logging.ERROR))
    root_logger.addHandler(_console_handler(formatter))

    app_logger = app.logger
    app_logger.setLevel(logging.INFO)

    # -------------------------
    # ACCESS LOG
    # -------------------------
    access_logger = logging.getLogger("access")
    _reset(access_logger)
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False
    access_logger.addHandler(_rotating_handler(
        os.path.join(log_dir, "access.log"), 7, logging.Formatter(ACCESS_FORMAT), logging.INFO
    ))
    access_logger.addHandler(_console_handler(logging.Formatter(ACCESS_FORMAT)))

    # -------------------------
    # PAYMENTS AUDIT LOG
    # -------------------------
    payments_logger = logging.getLogger("payments")
    _reset(payments_logger)
    payments_logger.setLevel(logging.INFO)
    payments_logger.propagate = False
    payments_logger.addHandler(_rotating_handler(
        os.path.join(log_dir, "payments.log"), 30, formatter, logging.INFO
    ))
    payments_logger.addHandler(_console_handler(formatter))

    # -------------------------
    # EMAIL ALERTS (OPT-IN)
    # -------------------------
    enable_smtp = os.getenv("ENABLE_SMTP_ALERTS", "false").lower() in ("1", "true", "yes")
    if enable_smtp and not app.debug and not app.testing:
        try:
            mail_handler = SMTPHandler(
                mailhost=(app.config.get("SMTP_HOST", "localhost"), int(app.config.get("SMTP_PORT", 587))),
                fromaddr=app.config.get("EMAIL_SENDER", "noreply@fruitpanda.com"),
                toaddrs=[addr.strip() for addr in os.getenv("SMTP_TO", "admin@fruitpanda.com").split(",") if addr.strip()],
                subject=os.getenv("SMTP_SUBJECT", "🚨 Fruit Panda Critical Error"),
                credentials=(app.config.get("SMTP_USER"), app.config.get("SMTP_PASS")) if app.config.get("SMTP_USER") else None,
                secure=()
            )
            mail_handler.setLevel(logging.ERROR)
            mail_handler.setFormatter(formatter)
            mail_handler._fruitpanda = True
            root_logger.addHandler(mail_handler)
        except Exception as e:
            app_logger.warning(f"SMTP alerts disabled due to configuration error: {e}")

    # -------------------------
    # LOG HOOKS & TASKS
    # -------------------------
    register_access_log_hook(app, access_logger)
    cleanup_old_logs(app, log_dir)
    register_log_summary_command(app)

    app_logger.info("🚀 Logging initialized successfully.")
    return app_logger


# ==================================================
# ACCESS LOGGING
# ==================================================
def register_access_log_hook(app, access_logger):
    """Logs each incoming request (IP, method, URL) into access.log."""
    from flask import request

    @app.before_request
    def log_request_info():
        try:
            access_logger.info(f"{request.remote_addr} {request.method} {request.url}")
        except Exception as e:
            app.logger.warning(f"⚠️ Failed to log request: {e}")


# ==================================================
# OLD LOG CLEANUP & COMPRESSION
# ==================================================
def cleanup_old_logs(app, folder="logs", days=7):
    """Compress rotated logs and delete archives older than ``days``."""
    now = time.time()
    for log_file in glob.glob(os.path.join(folder, "*.log.*")):
        if log_file.endswith(".gz"):
            continue
        try:
            with open(log_file, "rb") as f_in:
                with gzip.open(f"{log_file}.gz", "wb") as f_out:
                    f_out.writelines(f_in)
            os.remove(log_file)
            app.logger.info(f"🗜️ Compressed log: {log_file}")
        except OSError as e:
            app.logger.error(f"❌ Failed to compress {log_file}: {e}")

    for gz_file in glob.glob(os.path.join(folder, "*.gz")):
        if os.stat(gz_file).st_mtime < now - days * 86400:
            os.remove(gz_file)
            app.logger.info(f"🧹 Deleted old log: {gz_file}")


# ==================================================
# CLI LOG SUMMARY COMMAND
# ==================================================
LOG_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2}).*\[(INFO|ERROR|WARNING)\]")


def summarize_log_dir(log_dir, days=7, prefixes=("app.log", "error.log", "payments.log")):
    """Count INFO/WARNING/ERROR lines per day across current and rotated logs."""
    summary = defaultdict(lambda: {"INFO": 0, "ERROR": 0, "WARNING": 0})
    if not os.path.isdir(log_dir):
        return summary
    now = datetime.now()

    for filename in os.listdir(log_dir):
        if not filename.startswith(prefixes):
            continue

        path = os.path.join(log_dir, filename)
        mtime = datetime.fromtimestamp(os.path.getmtime(path))
        if (now - mtime).days > days:
            continue

        opener = gzip.open if filename.endswith(".gz") else open
        try:
            with opener(path, "rt", encoding="utf-8", errors="ignore") as f:
                for line in f:
                    match = LOG_PATTERN.match(line)
                    if match:
                        date_str, level = match.groups()
                        summary[date_str][level] += 1
        except OSError as e:
            click.echo(f"⚠️ Could not read {filename}: {e}")
    return summary


def register_log_summary_command(app):
    """Adds 'flask logs:summary' CLI command to view log stats."""
    if "logs:summary" in app.cli.commands:
        return

    @click.command("logs:summary")
    @with_appcontext
    @click.option("--days", default=7, help="Days of logs to summarize")
    def summarize_logs(days):
        summary = summarize_log_dir(app.config.get("LOG_DIR", "logs"), days)

        if not summary:
            click.echo("No log entries found in the specified time range.")
            return

        click.echo("\n📊 Log Summary\n──────────────────────────────")
        total_info = total_error = total_warn = 0

        for date_str in sorted(summary.keys()):
            counts = summary[date_str]
            total_info += counts["INFO"]
            total_error += counts["ERROR"]
            total_warn += counts["WARNING"]
            click.echo(
                f"{date_str}  INFO: {counts['INFO']:<5}  WARNING: {counts['WARNING']:<5}  ERROR: {counts['ERROR']:<5}"
            )

        click.echo("──────────────────────────────")
        click.echo(
            f"Total INFO: {total_info}   WARNING: {total_warn}   ERROR: {total_error}"
        )

    app.cli.add_command(summarize_logs)
