"""Session orchestration core: conversation threads and live voice sessions."""
