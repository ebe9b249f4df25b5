# mentorship/settings/base.py
from pydantic_settings import BaseSettings


class MentorshipBaseSettings(BaseSettings):
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
