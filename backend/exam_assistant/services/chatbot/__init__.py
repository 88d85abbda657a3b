"""
Exam Chatbot Pipeline

Grounds chatbot answers in exam scheduling data along two paths:
1. Structured — classify the query's intent, run the matching database
   lookups, format them into a context block
2. Semantic — embed the query, search a vector index of pre-rendered exam
   summaries, keep the relevant matches

Both paths end in one chat-completion call with a role-aware system prompt.
The entry point is ChatbotService in service.py.
"""
