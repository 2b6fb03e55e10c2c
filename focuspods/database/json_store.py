#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - JSON File Store
Файловое хранилище с атомарной записью и резервной копией при повреждении
"""

import json
import shutil
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from focuspods.database.memory import InMemoryStore
from focuspods.database.store import StoreError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"


class JsonFileStore(InMemoryStore):
    """Хранилище в памяти, сбрасываемое на диск после каждого изменения"""

    def __init__(self, data_file: Path, backup_dir: Optional[Path] = None):
        super().__init__()
        self.data_file = Path(data_file)
        self.backup_dir = Path(backup_dir) if backup_dir else self.data_file.parent / "backups"
        self.file_lock = threading.RLock()
        self.save_count = 0
        self._loading = False

        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        self._load_file()

    def _on_change(self) -> None:
        if not self._loading:
            self._save()

    def _load_file(self) -> None:
        """Загрузка данных из файла"""
        if not self.data_file.exists():
            logger.info(f"📂 Файл данных {self.data_file} не найден, начинаем с пустой базы")
            return

        try:
            with self.file_lock:
                with open(self.data_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError("root element is not an object")

            self._loading = True
            try:
                self.restore(data.get('tables', {}))
            finally:
                self._loading = False

            logger.info(
                f"📂 Загружено {len(self._tables['users'])} пользователей, "
                f"{len(self._tables['pods'])} Pod'ов из {self.data_file}"
            )

        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"❌ Файл данных повреждён: {e}")
            self._handle_corruption()

    def _handle_corruption(self) -> None:
        """Повреждённый файл откладывается в бэкап, работа продолжается с пустой базой"""
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        backup_path = self.backup_dir / f"{self.data_file.stem}_corrupted_{stamp}{self.data_file.suffix}"
        shutil.copy2(self.data_file, backup_path)
        logger.warning(f"⚠️ Повреждённый файл сохранён как {backup_path}, начинаем с пустой базы")

    def _serialize(self) -> Dict[str, Any]:
        return {
            'version': SCHEMA_VERSION,
            'saved_at': datetime.now().isoformat(),
            'tables': self.dump(),
        }

    def _save(self) -> None:
        """Атомарное сохранение через временный файл"""
        with self.file_lock:
            temp_file = self.data_file.with_suffix('.tmp')
            try:
                with open(temp_file, 'w', encoding='utf-8') as f:
                    json.dump(self._serialize(), f, ensure_ascii=False, indent=2)
                temp_file.replace(self.data_file)
                self.save_count += 1
            except OSError as e:
                if temp_file.exists():
                    temp_file.unlink()
                raise StoreError(f"Failed to save {self.data_file}: {e}") from e
