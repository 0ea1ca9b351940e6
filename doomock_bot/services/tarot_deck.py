import random
from typing import List, Optional, Tuple

from models.models import TarotCard

MAJOR_ARCANA: List[TarotCard] = [
    TarotCard(0, "바보", "The Fool", "🤡",
              "새로운 여정이 시작됩니다. 순수한 마음으로 도전하세요.",
              "무모함을 경계하세요. 신중한 판단이 필요한 시기입니다."),
    TarotCard(1, "마법사", "The Magician", "🎩",
              "목표를 이룰 능력이 충분합니다. 의지를 행동으로 옮기세요.",
              "재능이 엉뚱한 곳에 쓰이고 있지 않은지 돌아보세요."),
    TarotCard(2, "여교황", "The High Priestess", "🔮",
              "내면의 목소리에 귀 기울이면 길이 보입니다.",
              "감정과 논리 사이의 균형을 찾으세요."),
    TarotCard(3, "황후", "The Empress", "👸",
              "풍요와 결실의 기운이 가득합니다.",
              "자기 관리가 필요합니다. 지나친 의존을 경계하세요."),
    TarotCard(4, "황제", "The Emperor", "🤴",
              "질서와 리더십으로 상황을 주도하세요.",
              "경직된 태도보다 유연함이 필요합니다."),
    TarotCard(5, "교황", "The Hierophant", "⛪",
              "믿을 만한 조언자나 전통에서 답을 찾을 수 있습니다.",
              "관습에 얽매이지 말고 자신만의 방식을 시도해 보세요."),
    TarotCard(6, "연인", "The Lovers", "💕",
              "중요한 선택과 조화로운 관계가 기다립니다.",
              "관계의 불균형이나 성급한 선택을 재고하세요."),
    TarotCard(7, "전차", "The Chariot", "🏎️",
              "강한 추진력으로 앞으로 나아갈 때입니다.",
              "방향을 잃지 않도록 속도를 조절하세요."),
    TarotCard(8, "힘", "Strength", "💪",
              "부드러운 인내가 가장 큰 힘이 됩니다.",
              "내면의 두려움을 마주하고 자신감을 회복하세요."),
    TarotCard(9, "은둔자", "The Hermit", "🏔️",
              "잠시 멈추고 스스로를 돌아볼 시간입니다.",
              "지나친 고립은 피하고 주변과 소통하세요."),
    TarotCard(10, "운명의 수레바퀴", "Wheel of Fortune", "🎰",
              "흐름이 바뀌고 있습니다. 기회를 잡으세요.",
              "일시적인 정체기입니다. 이 또한 지나갈 것입니다."),
    TarotCard(11, "정의", "Justice", "⚖️",
              "공정한 판단이 좋은 결과로 이어집니다.",
              "편견을 경계하고 객관적으로 바라보세요."),
    TarotCard(12, "매달린 남자", "The Hanged Man", "🙃",
              "관점을 바꾸면 새로운 답이 보입니다.",
              "불필요한 희생에서 벗어나야 합니다."),
    TarotCard(13, "죽음", "Death", "💀",
              "한 시기가 끝나고 새로운 시작이 찾아옵니다.",
              "변화를 거부하기보다 과거를 놓아주세요."),
    TarotCard(14, "절제", "Temperance", "🧘",
              "균형과 조화가 일을 순조롭게 만듭니다.",
              "조급함을 내려놓고 중도를 찾으세요."),
    TarotCard(15, "악마", "The Devil", "😈",
              "유혹과 집착을 알아차리는 것이 첫걸음입니다.",
              "속박에서 벗어날 힘이 생기고 있습니다."),
    TarotCard(16, "탑", "The Tower", "🏰",
              "예상치 못한 변화가 낡은 틀을 깨뜨립니다.",
              "피할 수 없는 변화라면 차분히 받아들이세요."),
    TarotCard(17, "별", "The Star", "⭐",
              "희망과 영감이 당신을 인도합니다.",
              "잠시 잃어버린 희망을 다시 찾아보세요."),
    TarotCard(18, "달", "The Moon", "🌙",
              "불확실함 속에서도 직관을 믿으세요.",
              "혼란이 걷히고 명확함이 돌아오고 있습니다."),
    TarotCard(19, "태양", "The Sun", "☀️",
              "밝은 에너지와 성공이 함께합니다.",
              "일시적인 좌절이 있어도 곧 빛이 비칩니다."),
    TarotCard(20, "심판", "Judgement", "🎺",
              "지난 노력이 보상받는 각성의 시기입니다.",
              "지나친 자기 비판에서 벗어나세요."),
    TarotCard(21, "세계", "The World", "🌍",
              "하나의 여정이 완성되었습니다. 성취를 누리세요.",
              "마무리하지 못한 일을 먼저 정리하세요."),
]

REVERSED_PROBABILITY = 0.3


def card_by_number(number: int) -> Optional[TarotCard]:
    if 0 <= number < len(MAJOR_ARCANA):
        return MAJOR_ARCANA[number]
    return None


def draw_card(rng: random.Random) -> Tuple[TarotCard, bool]:
    """One card and whether it came out reversed."""
    card = rng.choice(MAJOR_ARCANA)
    return card, rng.random() < REVERSED_PROBABILITY
