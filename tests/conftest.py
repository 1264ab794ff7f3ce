import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import pytz

from kotoquiz.main import app
from kotoquiz.models.base import Base
from kotoquiz.models.label import Label
from kotoquiz.models.level import Level
from kotoquiz.models.word import Word, YomiType
from kotoquiz.models.word_learning_history import WordLearningHistory, LearningStatus
from kotoquiz.repositories.base import BaseRepository
from kotoquiz.utils.database import get_db, init_db

# 测试数据库（内存）
SQLALCHEMY_DATABASE_URL = "sqlite://"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=pytz.utc)

USER_ID = "3f1c2a9e-user"


@pytest.fixture(scope="function")
def db_session():
    """创建测试数据库会话"""
    init_db(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def catalog(db_session):
    """
    词库：
      animals 标签 -> 犬 猫 鳥 (N5)
      food 标签   -> 米 肉 (N4)，魚 同时属于 animals 与 food (N4)
    """
    labels = BaseRepository(db_session, Label)
    levels = BaseRepository(db_session, Level)
    words = BaseRepository(db_session, Word)

    animals = labels.create(en="animals", fr="animaux", type="TAG")
    food = labels.create(en="food", fr="nourriture", type="TAG")
    jlpt = labels.create(en="JLPT", fr="JLPT", type="LEVEL_CATEGORY")
    n5 = labels.create(en="N5", fr="N5", type="LEVEL_NAME")
    n4 = labels.create(en="N4", fr="N4", type="LEVEL_NAME")

    level_n5 = levels.create(category=jlpt, level_names=[n5])
    level_n4 = levels.create(category=jlpt, level_names=[n4])

    def make_word(kanji, yomi, en, fr, tags, level):
        translation = labels.create(en=en, fr=fr, type="TRANSLATION")
        return words.create(
            kanji=kanji, yomi=yomi, yomi_type=YomiType.KUNYOMI,
            translation=translation, tags=tags, levels=[level]
        )

    created = {
        "dog": make_word("犬", "いぬ", "dog", "chien", [animals], level_n5),
        "cat": make_word("猫", "ねこ", "cat", "chat", [animals], level_n5),
        "bird": make_word("鳥", "とり", "bird", "oiseau", [animals], level_n5),
        "rice": make_word("米", "こめ", "rice", "riz", [food], level_n4),
        "meat": make_word("肉", "にく", "meat", "viande", [food], level_n4),
        "fish": make_word("魚", "さかな", "fish", "poisson", [animals, food], level_n4),
    }

    return {
        "tags": {"animals": animals.id, "food": food.id},
        "level_names": {"N5": n5.id, "N4": n4.id},
        "words": {name: word.id for name, word in created.items()},
    }


def make_history(word_id, next_review_date, status=LearningStatus.LEARNING,
                 nb_success=1, nb_errors=0, nb_unanswered=0, current_streak=1, user_id=USER_ID):
    """构造一条满足计数不变量的历史记录"""
    return WordLearningHistory(
        user_id=user_id,
        word_id=word_id,
        last_viewed_at=FIXED_NOW,
        next_review_date=next_review_date,
        answer_count=nb_success + nb_errors + nb_unanswered,
        nb_success=nb_success,
        nb_errors=nb_errors,
        nb_unanswered=nb_unanswered,
        current_streak=current_streak,
        best_streak=max(current_streak, 1 if nb_success else 0),
        learning_status=status,
    )
