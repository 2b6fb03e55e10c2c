# services/messages.py

def session_time_up(duration_minutes: int) -> str:
    return (
        f"🎉 Фокус-сессия завершена!\n\n"
        f"Поздравляем! Ты продержался все {duration_minutes} минут! 💪\n\n"
        f"Что ты сделал за это время?"
    )


def achievement_unlocked(icon: str, name: str, reward: int) -> str:
    return f"🏆 Разблокировано: {icon} {name}! +{reward} FocusCoins"


def pod_joined(user_name: str, participants_count: int) -> str:
    return f"{user_name} присоединился к твоему Pod'у! Участников: {participants_count}"


def pod_started(title: str, duration_minutes: int) -> str:
    return f"Pod \"{title}\" начался! Фокусируемся {duration_minutes} минут 🎯"


def pod_completed(title: str, duration_minutes: int) -> str:
    return f"🎉 Pod \"{title}\" завершён!\n\nЧто ты сделал за {duration_minutes} минут?"


def pod_cancelled(title: str) -> str:
    return f"Pod \"{title}\" был отменён"


def default_pod_title(creator_name: str) -> str:
    return f"Фокус-Pod от {creator_name}"


def daily_reminder(today_pomodoros: int) -> str:
    return f"Привет! У тебя {today_pomodoros} Pomodoro сегодня. Может, начнёшь? 🚀"


def streak_warning(streak: int, hours_left: int) -> str:
    return (
        f"⚠️ Твоя серия в опасности! {streak} дней 🔥 "
        f"Осталось {hours_left} часов до конца дня."
    )


def weekly_stats(pomodoros: int, focus_minutes: int, tasks: int, coins: int) -> str:
    hours, minutes = divmod(focus_minutes, 60)
    return (
        f"📊 Статистика за неделю:\n"
        f"🎯 Pomodoro: {pomodoros}\n"
        f"⏱️ Фокуса: {hours}ч {minutes}мин\n"
        f"✅ Задач: {tasks}\n"
        f"🪙 FocusCoins: +{coins}\n\n"
        f"Отличная работа! Так держать! 💪"
    )


def reminder(text: str) -> str:
    return f"⏰ Напоминание: {text}"
