"""MindMeld: real-time multiplayer answer-guessing game backend."""
