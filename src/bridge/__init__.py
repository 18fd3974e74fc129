"""Per-call bridge between a Twilio media stream and an OpenAI Realtime session."""
