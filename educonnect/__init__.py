"""EduConnect backend.

Student/parent accounts, vocational-course tracking and an AI mentor chat
that forwards student questions to a hosted LLM.
"""
