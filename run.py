#!/usr/bin/env python3
"""
Универсальный скрипт для запуска команд проекта
Работает на Windows/Linux/Mac без установки make
"""

import subprocess
import sys


COMMANDS = {
    "run": {
        "desc": "Запустить сервис заказов",
        "cmd": [sys.executable, "main.py"],
    },
    "test": {
        "desc": "Запустить все тесты",
        "cmd": [sys.executable, "-m", "pytest"],
    },
    "test-unit": {
        "desc": "Только unit тесты",
        "cmd": [sys.executable, "-m", "pytest", "tests/unit"],
    },
    "test-integration": {
        "desc": "Только интеграционные тесты",
        "cmd": [sys.executable, "-m", "pytest", "tests/integration"],
    },
    "lint": {
        "desc": "Проверить код линтерами",
        "cmd": ["ruff", "check", "."],
    },
    "format": {
        "desc": "Отформатировать код",
        "cmd": ["ruff", "format", "."],
    },
    "migrate": {
        "desc": "Применить миграции БД",
        "cmd": ["alembic", "upgrade", "head"],
    },
    "migrate-current": {
        "desc": "Показать текущую версию БД",
        "cmd": ["alembic", "current"],
    },
    "migrate-history": {
        "desc": "Показать историю миграций",
        "cmd": ["alembic", "history"],
    },
}

SPECIAL_COMMANDS = {
    "help": "Показать эту справку",
    "migrate-create": "Создать миграцию (использование: python run.py migrate-create 'описание')",
}


def print_help():
    """Показать справку"""
    print("Order Lifecycle - Команды")
    print("=" * 60)
    print("\nИспользование: python run.py <команда> [аргументы]\n")

    print("ОСНОВНЫЕ КОМАНДЫ:")
    for cmd in ["run", "test", "test-unit", "test-integration", "lint", "format"]:
        print(f"  {cmd:20} - {COMMANDS[cmd]['desc']}")

    print("\nМИГРАЦИИ:")
    for cmd in ["migrate", "migrate-current", "migrate-history", "migrate-create"]:
        if cmd in COMMANDS:
            print(f"  {cmd:20} - {COMMANDS[cmd]['desc']}")
        else:
            print(f"  {cmd:20} - {SPECIAL_COMMANDS[cmd]}")

    print("\nПРИМЕРЫ:")
    print("  python run.py run")
    print("  python run.py migrate-create 'add shipment index'")
    print("\n" + "=" * 60)


def run_command(cmd_list):
    """Выполнить команду"""
    try:
        result = subprocess.run(cmd_list, check=True)
        return result.returncode == 0
    except subprocess.CalledProcessError as e:
        print(f"[ERROR] Ошибка при выполнении команды: {e}")
        return False
    except FileNotFoundError:
        print(f"[ERROR] Команда не найдена: {cmd_list[0]}")
        print("Установите необходимые зависимости: pip install -e .[test]")
        return False


def migrate_create(description):
    """Создать новую миграцию"""
    if not description:
        print("[ERROR] Укажите описание миграции")
        print("Использование: python run.py migrate-create 'описание'")
        return False

    print(f"[INFO] Создание миграции: {description}")
    return run_command(["alembic", "revision", "--autogenerate", "-m", description])


def main():
    """Главная функция"""
    if len(sys.argv) < 2:
        print_help()
        sys.exit(0)

    command = sys.argv[1]

    if command in ["help", "-h", "--help"]:
        print_help()
        sys.exit(0)

    if command == "migrate-create":
        description = " ".join(sys.argv[2:]) if len(sys.argv) > 2 else ""
        success = migrate_create(description)
        sys.exit(0 if success else 1)

    if command in COMMANDS:
        print(f"[RUN] {COMMANDS[command]['desc']}")
        success = run_command(COMMANDS[command]["cmd"])
        sys.exit(0 if success else 1)

    print(f"[ERROR] Неизвестная команда: {command}")
    print("Используйте: python run.py help")
    sys.exit(1)


if __name__ == "__main__":
    main()
