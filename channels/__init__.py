"""
Email channel: transports and type-specific senders.

  channels.base           — error hierarchy, EmailTransport base, metrics
  channels.email_adapter  — ResendEmailTransport (Resend HTTP API)
  channels.email_service  — EmailService: subject + template + send per job type
"""
