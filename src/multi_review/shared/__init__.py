"""Shared module - 설정, 모델, Git, 출력, LLM 어댑터."""
