"""
Team and profile.

Components:
- member_models.py: Member / Profile data structures + record conversion
- roster.py: live team roster, invitations and sign-up registration
- profile_store.py: the signed-in user's display name and preferences
"""
