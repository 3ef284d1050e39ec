"""Minimal demonstration of a few conversational turns."""

from chat_core.api.service import get_transcript, submit_message

if __name__ == "__main__":
    for question in [
        "Hello! What can you do?",
        "coffee shops near me",
        "What time is it in Tokyo?",
    ]:
        result = submit_message(question)
        print("User:", question)
        if result is None:
            print("Assistant: (busy)")
            continue
        print(f"Assistant [{result['intent']}]:", result["assistant_message"]["content"])

    print("\nTranscript:")
    for m in get_transcript():
        print(f"  {m['role']:<9} {m['lifecycle']:<9} {m['content'][:60]}")
