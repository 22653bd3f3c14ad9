"""
业务配置接口 - 支持可替换的业务配置

新项目可以实现自己的业务配置，替换默认配置。
请求边界的枚举校验（database/schemas.py）全部从这里读取取值范围。
"""
from abc import ABC, abstractmethod
from typing import Dict, List


class BusinessConfig(ABC):
    """业务配置抽象基类"""

    @abstractmethod
    def get_circles(self) -> List[str]:
        """获取业务圈（区域）列表"""
        pass

    @abstractmethod
    def get_event_categories(self) -> List[str]:
        """获取活动类别列表"""
        pass

    @abstractmethod
    def get_customer_types(self) -> List[str]:
        """获取客户类型列表"""
        pass

    @abstractmethod
    def get_issue_types(self) -> List[str]:
        """获取现场问题类型列表"""
        pass

    @abstractmethod
    def get_placeholder_labels(self) -> Dict[str, str]:
        """获取名称解析失败时使用的占位文本"""
        pass


class FieldEventConfig(BusinessConfig):
    """电信推广活动业务配置"""

    def get_circles(self) -> List[str]:
        return [
            "ANDAMAN_NICOBAR", "ANDHRA_PRADESH", "ASSAM", "BIHAR",
            "CHHATTISGARH", "GUJARAT", "HARYANA", "HIMACHAL_PRADESH",
            "JAMMU_KASHMIR", "JHARKHAND", "KARNATAKA", "KERALA",
            "MADHYA_PRADESH", "MAHARASHTRA", "NORTH_EAST_I", "NORTH_EAST_II",
            "ODISHA", "PUNJAB", "RAJASTHAN", "TAMIL_NADU", "TELANGANA",
            "UTTARAKHAND", "UTTAR_PRADESH_EAST", "UTTAR_PRADESH_WEST",
            "WEST_BENGAL",
        ]

    def get_event_categories(self) -> List[str]:
        return [
            "Cultural", "Religious", "Sports", "Exhibition", "Fair",
            "Festival", "Agri-Tourism", "Eco-Tourism", "Trade/Religious",
        ]

    def get_customer_types(self) -> List[str]:
        return ["B2C", "B2B", "Government", "Enterprise"]

    def get_issue_types(self) -> List[str]:
        return [
            "MATERIAL_SHORTAGE", "SITE_ACCESS", "EQUIPMENT",
            "NETWORK_PROBLEM", "OTHER",
        ]

    def get_placeholder_labels(self) -> Dict[str, str]:
        return {
            "event": "Unknown Event",
            "raiser": "Team Member",
            "manager": "Manager",
        }


# 全局业务配置实例（可以在入口脚本中替换）
business_config: BusinessConfig = FieldEventConfig()
