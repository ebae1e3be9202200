import os


class Config:
    """
    Configuration class for environment variables and default settings.
    """

    # Location of the file holding the endpoint list and connection string
    CONFIG_PATH = os.environ.get("PINGWATCH_CONFIG", "config.json")

    # Minimum wall-clock time one round occupies, in seconds
    CADENCE_SECONDS = float(os.environ.get("CADENCE_SECONDS", "1.0"))

    # Upper bound for a single request; the round deadline usually fires first
    REQUEST_TIMEOUT_SECONDS = float(os.environ.get("REQUEST_TIMEOUT_SECONDS", "5.0"))

    # Result sink selection: "postgres", "redis" or "memory"
    SINK_TYPE = os.environ.get("SINK_TYPE", "postgres")
    REDIS_STREAM_KEY = os.environ.get("REDIS_STREAM_KEY", "pingwatch:results")

    # Directory of NNN_name.sql files; defaults to the migrations shipped with the package
    MIGRATIONS_DIR = os.environ.get(
        "MIGRATIONS_DIR",
        os.path.join(os.path.dirname(os.path.dirname(__file__)), "migrations"),
    )

    # Prometheus exposition port, 0 disables the metrics server
    METRICS_PORT = int(os.environ.get("METRICS_PORT", "0"))
