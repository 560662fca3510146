import requests
import os
from dotenv import load_dotenv

# --- Настройки ---
load_dotenv()

DEX_TOOLS_API = os.getenv("DEX_TOOLS_API", "http://localhost:8000")

# Убедимся, что URL начинается с http(s)://
if not DEX_TOOLS_API.startswith(("http://", "https://")):
    DEX_TOOLS_API = "https://" + DEX_TOOLS_API

url = f"{DEX_TOOLS_API.rstrip('/')}/results/csv"

# --- Основной запрос ---
try:
    print(f"📡 Запрос CSV: {url}")

    response = requests.get(url, timeout=30)
    response.raise_for_status()

    # Имя файла зависит от режима (dex_pairs.csv / dex_transactions.csv)
    disposition = response.headers.get("Content-Disposition", "")
    filename = disposition.split("filename=")[-1] if "filename=" in disposition else "dex_results.csv"

    with open(filename, "w", encoding="utf-8") as f:
        f.write(response.text)

    print(f"✅ Файл успешно сохранён: {filename}")

except requests.Timeout:
    print("❌ Таймаут: сервер не ответил за 30 секунд.")
except requests.ConnectionError:
    print("❌ Не удаётся подключиться к серверу. Проверьте URL и что сервер запущен.")
except requests.HTTPError as e:
    print(f"❌ HTTP ошибка: {e.response.status_code}")
    print(f"   Ответ сервера: {e.response.text[:200]}")
