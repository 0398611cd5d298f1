"""Streamlit chat widget for the EduConnect AI mentor.

Run with: streamlit run streamlit_chat.py
"""
import os
import uuid

import requests
import streamlit as st

# ---------------------------
# CONFIG
# ---------------------------
st.set_page_config(page_title="EduConnect AI Mentor", page_icon="🎓", layout="wide")

API_BASE = os.getenv("EDUCONNECT_API_BASE", "http://127.0.0.1:8000")  # FastAPI backend
MAX_MESSAGE_LENGTH = 500
FALLBACK_REPLY = "I'm having trouble connecting right now. Please try again in a moment."
QUICK_SUGGESTIONS = [
    "How can I improve my science scores?",
    "Make me a weekly study plan",
    "Tips for exam preparation",
    "Which vocational course suits me?",
]

st.title("🎓 EduConnect AI Mentor")
st.caption("Personalised study help for students, and progress insight for parents.")


# ---------------------------
# HELPER FUNCTIONS
# ---------------------------
def auth_headers() -> dict:
    token = st.session_state.get("token")
    return {"Authorization": f"Bearer {token}"} if token else {}


def load_history(student_id=None):
    """Replace the local transcript with the server-side history."""
    url = f"{API_BASE}/api/chat/history"
    if student_id:
        url = f"{url}/{student_id}"
    try:
        res = requests.get(url, headers=auth_headers(), timeout=15)
        if res.ok:
            st.session_state["messages"] = [
                {"role": m["role"], "content": m["content"]} for m in res.json().get("history", [])
            ]
    except requests.RequestException as e:
        st.warning(f"Could not load chat history: {e}")


def load_students():
    try:
        res = requests.get(f"{API_BASE}/api/students", headers=auth_headers(), timeout=15)
        if res.ok:
            return res.json().get("students", [])
    except requests.RequestException:
        pass
    return []


def send_message(text: str) -> str:
    payload = {"text": text, "messageId": uuid.uuid4().hex}
    user = st.session_state.get("user") or {}
    if user.get("userType") == "parent":
        payload["studentId"] = st.session_state.get("selected_student")
    try:
        res = requests.post(f"{API_BASE}/api/chat", json=payload, headers=auth_headers(), timeout=90)
        data = res.json()
        if res.ok and data.get("success"):
            return data["reply"]
        # Failed chats still carry a fallback reply for display
        return data.get("reply") or data.get("error") or FALLBACK_REPLY
    except (requests.RequestException, ValueError):
        return FALLBACK_REPLY


# ---------------------------
# SESSION STATE
# ---------------------------
if "messages" not in st.session_state:
    st.session_state["messages"] = []
if "token" not in st.session_state:
    st.session_state["token"] = None
if "user" not in st.session_state:
    st.session_state["user"] = None
if "selected_student" not in st.session_state:
    st.session_state["selected_student"] = None


# ---------------------------
# SIDEBAR (login / account)
# ---------------------------
with st.sidebar:
    st.header("🔐 Account")

    if st.session_state["token"] is None:
        with st.form("login_form"):
            email = st.text_input("Email", value="student@educonnect.com")
            password = st.text_input("Password", type="password")
            role = st.radio("I am a", ["student", "parent"], horizontal=True)
            submitted = st.form_submit_button("Log in")

        if submitted:
            try:
                res = requests.post(
                    f"{API_BASE}/api/login",
                    json={"email": email, "password": password, "userType": role},
                    timeout=15,
                )
                data = res.json()
                if res.ok and data.get("success"):
                    st.session_state["token"] = data["token"]
                    st.session_state["user"] = data["user"]
                    if role == "student":
                        load_history()
                    st.rerun()
                else:
                    st.error(data.get("error", "Login failed"))
            except requests.RequestException as e:
                st.error(f"⚠️ Error contacting backend: {e}")
    else:
        user = st.session_state["user"]
        st.success(f"Logged in as **{user['name']}** ({user['userType']})")

        if user["userType"] == "student":
            st.markdown(f"**Class:** {user.get('studentClass', '-')}")
            st.markdown(f"**Reward points:** {user.get('rewardPoints', 0)}")
        else:
            students = load_students()
            options = {f"{s['name']} ({s.get('studentId', s['id'])})": s.get("studentId", s["id"]) for s in students}
            if options:
                label = st.selectbox("Chat about", list(options.keys()))
                selected = options[label]
                if selected != st.session_state["selected_student"]:
                    st.session_state["selected_student"] = selected
                    load_history(selected)
            else:
                st.info("No students found.")

        if st.button("🧹 Clear chat"):
            # Local only; the server keeps the full history
            st.session_state["messages"] = []
            st.rerun()

        if st.button("Log out"):
            for key in ("token", "user", "selected_student"):
                st.session_state[key] = None
            st.session_state["messages"] = []
            st.rerun()


# ---------------------------
# MAIN CHAT INTERFACE
# ---------------------------
st.subheader("💬 Chat with your mentor")

if st.session_state["token"] is None:
    st.info("Log in from the sidebar to start chatting.")
    st.stop()

for msg in st.session_state["messages"]:
    st.chat_message("user" if msg["role"] == "user" else "assistant").markdown(msg["content"])

prompt = None
if not st.session_state["messages"]:
    st.markdown("**Try asking:**")
    cols = st.columns(len(QUICK_SUGGESTIONS))
    for col, suggestion in zip(cols, QUICK_SUGGESTIONS):
        if col.button(suggestion):
            prompt = suggestion

typed = st.chat_input(f"Ask your mentor (max {MAX_MESSAGE_LENGTH} characters)...")
if typed:
    prompt = typed

if prompt:
    if len(prompt) > MAX_MESSAGE_LENGTH:
        st.warning(f"Message is {len(prompt)}/{MAX_MESSAGE_LENGTH} characters; it was shortened.")
        prompt = prompt[:MAX_MESSAGE_LENGTH]

    st.session_state["messages"].append({"role": "user", "content": prompt})
    st.chat_message("user").markdown(prompt)

    with st.chat_message("assistant"):
        with st.spinner("Thinking... ✨"):
            response = send_message(prompt)
        st.markdown(response)

    st.session_state["messages"].append({"role": "assistant", "content": response})
    st.caption(f"{len(prompt)}/{MAX_MESSAGE_LENGTH} characters")
