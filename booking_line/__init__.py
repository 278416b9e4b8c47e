"""Phone booking assistant: Twilio webhooks driving a per-caller dialogue FSM."""
