"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理：
- NotFound 系列 -> 404
- NothingUpdated / ConcurrentModification -> 409（可重試）
- 其他 InvestmentGameException -> 400
"""


class InvestmentGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ 查無資料 ============

class NotFound(InvestmentGameException):
    """參照的資料不存在"""
    pass


class GameNotFound(NotFound):
    """game 單例列不存在（資料庫尚未初始化）"""
    def __init__(self):
        super().__init__("Game not found")


class SettingsNotFound(NotFound):
    """settings 單例列不存在"""
    def __init__(self):
        super().__init__("Settings not found")


class TeamNotFound(NotFound):
    """隊伍不存在"""
    def __init__(self, team_id):
        self.team_id = team_id
        super().__init__(f"Team {team_id} not found")


class UnknownCredentials(TeamNotFound):
    """本場遊戲沒有使用這組登入憑證的隊伍"""
    def __init__(self):
        self.team_id = None
        NotFound.__init__(self, "Team with these credentials not found")


class BalanceNotFound(NotFound):
    """餘額不存在"""
    def __init__(self, balance_id):
        self.balance_id = balance_id
        super().__init__(f"Balance {balance_id} not found")


class TransactionNotFound(NotFound):
    """此回合沒有股票交易紀錄"""
    def __init__(self, balance_id, round_number):
        self.balance_id = balance_id
        self.round_number = round_number
        super().__init__(
            f"Shares transaction for balance {balance_id} in round {round_number} not found"
        )


class CompanyNotFound(NotFound):
    """公司不存在"""
    def __init__(self, company_id):
        self.company_id = company_id
        super().__init__(f"Company {company_id} not found")


class AdditionalInfoNotFound(NotFound):
    """額外資訊不存在"""
    def __init__(self, additional_info_id):
        self.additional_info_id = additional_info_id
        super().__init__(f"Additional info {additional_info_id} not found")


# ============ 寫入衝突 ============

class NothingUpdated(InvestmentGameException):
    """條件更新沒有命中任何一列"""
    pass


class ConcurrentModification(InvestmentGameException):
    """讀取後餘額已被其他請求修改，呼叫者可以重試"""
    pass


# ============ 時段 ============

class NoTradePeriod(InvestmentGameException):
    """目前不是交易時段，不能購買"""
    def __init__(self):
        super().__init__("Cannot do purchase because it is not trade period")


class NoRegistrationPeriod(InvestmentGameException):
    """目前不是註冊時段，不能建立隊伍"""
    def __init__(self):
        super().__init__("Cannot create team because it is not registration period")


# ============ 購買 ============

class EmptyPurchase(InvestmentGameException):
    """購買內容為空（或同時指定股票與額外資訊）"""
    pass


class NegativeShareCount(InvestmentGameException):
    """持股數量不能是負數"""
    def __init__(self, company_id, count):
        self.company_id = company_id
        self.count = count
        super().__init__(
            f"Count of shares cannot be negative (company {company_id}: {count})"
        )


class IncorrectShareCount(InvestmentGameException):
    """購買請求會讓某家公司的持股變成負數"""
    pass


class InsufficientBalance(InvestmentGameException):
    """餘額不足以完成交易"""
    def __init__(self, balance, amount):
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient balance to complete the transaction (balance={balance}, amount={amount})"
        )


class NoAdditionalInfos(InvestmentGameException):
    """沒有可以隨機購買的額外資訊"""
    def __init__(self):
        super().__init__("No additional infos left to purchase")


# ============ 隊伍 / 公司 ============

class TeamAlreadyExists(InvestmentGameException):
    """同一場遊戲內登入憑證重複"""
    pass


class CompanyArchived(InvestmentGameException):
    """已封存的公司不能修改"""
    pass


class NoTeamsInGame(InvestmentGameException):
    """目前這場遊戲沒有任何隊伍"""
    def __init__(self):
        super().__init__("No teams for current game")
