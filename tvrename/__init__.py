"""tvrename - identify TV episode files from their subtitles."""

__version__ = "0.1.0"
