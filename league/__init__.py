"""
League Service - Membership backend for the fantasy trading league

Responsibilities:
- Wallet sign-in (challenge / signature) and session tokens
- Team lifecycle (create, edit, delete) with member invites
- Invite responses and the user team sets they feed
- Active tournament joining and the admin bracket
- Membership notifications over Redis
"""
