import os
import sys

import altair as alt
import pandas as pd
import streamlit as st

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from selmood.client.config import get_config
from selmood.client.gateway import build_gateway
from selmood.client.log import setup_logging
from selmood.client.models import MAX_SCORE, MIN_SCORE
from selmood.client.survey import (
    AVATARS,
    EMOJI_SCALE,
    GENDERS,
    GRADES,
    AppState,
    SurveySession,
    validate_profile_form,
)

st.set_page_config(page_title="SEL 心情小問卷", page_icon="🌈", layout="centered")


@st.cache_resource
def get_gateway():
    cfg = get_config()
    setup_logging(cfg.log_level)
    return build_gateway(cfg)


gateway = get_gateway()

if "survey" not in st.session_state:
    st.session_state.survey = SurveySession()
if "profile_error" not in st.session_state:
    st.session_state.profile_error = ""

survey: SurveySession = st.session_state.survey

with st.sidebar:
    admin_view = st.toggle("老師報表 (Admin)", value=survey.state == AppState.ADMIN)
    if admin_view and survey.state != AppState.ADMIN:
        survey.open_admin()
    elif not admin_view and survey.state == AppState.ADMIN:
        survey.close_admin()


def render_profile() -> None:
    st.title("🌈 今天心情如何？")
    st.subheader("先告訴我們你是誰吧！")
    with st.form("profile_form"):
        name = st.text_input("你的名字 (Name)")
        avatar = st.radio("選一個頭像 (Avatar)", AVATARS, horizontal=True)
        grade = st.selectbox("年級 (Grade)", [""] + GRADES)
        gender = st.selectbox("性別 (Gender)", [""] + GENDERS)
        if st.form_submit_button("開始 (Start)"):
            error = validate_profile_form(name, grade, gender)
            if error:
                st.session_state.profile_error = error
            else:
                st.session_state.profile_error = ""
                # Never raises: the gateway falls back to local storage when the backend is down.
                user = gateway.create_profile(name.strip(), avatar, grade, gender)
                survey.start(user)
                st.rerun()
    if st.session_state.profile_error:
        st.error(st.session_state.profile_error)


def render_question() -> None:
    question = survey.current_question
    user = survey.user
    st.progress(survey.progress / survey.total, text=f"{survey.progress} / {survey.total}")
    st.caption(f"{user.avatar} {user.name}")
    st.header(question["text"])
    columns = st.columns(len(EMOJI_SCALE))
    for column, option in zip(columns, EMOJI_SCALE):
        with column:
            if st.button(option["emoji"], key=f"q{question['id']}_{option['score']}", use_container_width=True):
                gateway.submit_response_in_background(user.id, question["id"], option["score"])
                survey.advance()
                st.rerun()
            st.caption(option["label"])


def render_completed() -> None:
    st.markdown("<div style='font-size:6rem;text-align:center'>🎉</div>", unsafe_allow_html=True)
    st.title("太棒了！你完成了！")
    st.write("謝謝你分享你的心情。你做得很好喔！")
    if st.button("回首頁 (Home)"):
        survey.reset()
        st.rerun()


def render_admin() -> None:
    st.title("老師報表 (Admin Report)")
    result = gateway.fetch_all_responses()
    if result.is_degraded:
        st.warning("後端無法連線，顯示本機資料。 (Backend unreachable, showing local data.)")
    else:
        st.success("資料來源：資料庫 (Source: DB)")

    if not result.data:
        st.info("目前沒有資料。 (No responses yet.)")
    else:
        df = pd.DataFrame(result.data)
        st.metric("Responses", len(df))
        st.dataframe(df, use_container_width=True, hide_index=True)

        averages = df.groupby("question_id", as_index=False)["score"].mean()
        chart = alt.Chart(averages).mark_bar().encode(
            x=alt.X("question_id:O", title="Question"),
            y=alt.Y("score:Q", title="Average score", scale=alt.Scale(domain=[MIN_SCORE, MAX_SCORE])),
            tooltip=["question_id:O", alt.Tooltip("score:Q", format=".2f")],
        )
        st.altair_chart(chart, use_container_width=True)

        st.download_button(
            "Download CSV",
            data=df.to_csv(index=False).encode("utf-8"),
            file_name="sel_responses.csv",
            mime="text/csv",
        )

    if st.button("清除本機資料 (Clear local data)"):
        gateway.clear_local_data()
        st.success("Local data cleared.")
        st.rerun()


if survey.state == AppState.ADMIN:
    render_admin()
elif survey.state == AppState.COMPLETED:
    render_completed()
elif survey.state == AppState.QUIZ and survey.user is not None:
    render_question()
else:
    render_profile()
