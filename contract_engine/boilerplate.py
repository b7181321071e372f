"""Hand-authored contract templates used when no uploaded structure is usable."""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from contract_engine.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BoilerplateTemplate:
    key: str
    keywords: tuple[str, ...]
    body: str


PURCHASE = BoilerplateTemplate(
    key="purchase",
    keywords=("采购", "purchase"),
    body="""采购合同

甲方（采购方）：[甲方名称]
地址：[甲方地址]
联系人：[甲方联系人]
电话：[甲方电话]

乙方（供应方）：[乙方名称]
地址：[乙方地址]
联系人：[乙方联系人]
电话：[乙方电话]

合同编号：[合同编号]
签订日期：[签订日期]

一、采购物品
物品名称：[物品名称]
规格型号：[规格型号]
数量：[数量]
单价：[单价]元
总价：[总价]元

二、交付条款
交付地点：[交付地点]
交付日期：[交付日期]
验收标准：[验收标准]

三、付款条款
付款方式：[付款方式]
定金比例：[定金比例]
尾款支付日期：[尾款支付日期]

四、违约责任
[违约责任]

甲方签字：_____________
乙方签字：_____________
""",
)

SALES = BoilerplateTemplate(
    key="sales",
    keywords=("销售", "sales"),
    body="""销售合同

甲方（销售方）：[甲方名称]
地址：[甲方地址]
联系人：[甲方联系人]
电话：[甲方电话]

乙方（购买方）：[乙方名称]
地址：[乙方地址]
联系人：[乙方联系人]
电话：[乙方电话]

合同编号：[合同编号]
签订日期：[签订日期]

一、销售商品
商品名称：[商品名称]
规格：[商品规格]
数量：[销售数量]
单价：[销售单价]元
总金额：[总金额]元

二、交付安排
交付日期：[交付日期]
交付地点：[交付地点]
运输方式：[运输方式]

三、付款条件
付款方式：[付款方式]
付款期限：[付款期限]
开票信息：[开票信息]

甲方（盖章）：_____________
乙方（盖章）：_____________
""",
)

FOREIGN_TRADE = BoilerplateTemplate(
    key="foreign_trade",
    keywords=("外贸", "foreign", "export", "import"),
    body="""外贸合同

买方（Buyer）：[买方名称]
地址（Address）：[买方地址]
电话（Tel）：[买方电话]

卖方（Seller）：[卖方名称]
地址（Address）：[卖方地址]
电话（Tel）：[卖方电话]

合同号（Contract No.）：[合同编号]
签订日期（Date）：[签订日期]

一、商品描述（Commodity）
商品名称（Name）：[商品名称]
规格（Specification）：[商品规格]
数量（Quantity）：[数量]
单价：[单价] USD
总价：[总价] USD

二、贸易条款（Trade Terms）
贸易术语：[贸易术语]
装运港：[装运港]
目的港：[目的港]

三、付款条件（Payment Terms）
付款方式：[付款方式]
付款期限：[付款期限]

四、装运条款（Shipment Terms）
装运期：[装运期]
分批装运：[分批装运]
转运：[转运]

买方签字：_____________
卖方签字：_____________
""",
)

GENERAL = BoilerplateTemplate(
    key="general",
    keywords=(),
    body="""合同

甲方：[甲方名称]
地址：[甲方地址]
电话：[甲方电话]

乙方：[乙方名称]
地址：[乙方地址]
电话：[乙方电话]

合同编号：[合同编号]
签订日期：[签订日期]

一、合同内容
[合同内容]

二、权利义务
甲方权利义务：[甲方权利义务]
乙方权利义务：[乙方权利义务]

三、合同金额
总金额：[合同金额]元
付款方式：[付款方式]

四、履行期限
开始日期：[开始日期]
结束日期：[结束日期]

甲方签字：_____________
乙方签字：_____________
""",
)

# Checked in order; GENERAL matches everything
TEMPLATES: tuple[BoilerplateTemplate, ...] = (PURCHASE, SALES, FOREIGN_TRADE, GENERAL)


def select_template(template_name: str) -> BoilerplateTemplate:
    """Pick a boilerplate template by keywords in the template name."""
    name = (template_name or "").lower()
    for template in TEMPLATES:
        if any(keyword in name for keyword in template.keywords):
            return template
    return GENERAL


def render_boilerplate(
    template_name: str,
    include_footer: bool = True,
    generated_on: Optional[date] = None,
) -> str:
    """Return the selected template text with placeholders still in place.

    Args:
        template_name: Caller's template name, used for keyword selection
        include_footer: Append a generation info section
        generated_on: Date written in the footer, defaults to today

    Returns:
        Template text ready for classification and substitution
    """
    template = select_template(template_name)
    logger.info(
        "Using boilerplate template",
        extra_data={"template_name": template_name, "boilerplate": template.key},
    )

    text = template.body
    if include_footer:
        generated_on = generated_on or date.today()
        text += (
            "\n--- 生成信息 ---\n"
            f"生成日期：{generated_on.year}年{generated_on.month}月{generated_on.day}日\n"
            f"模板：{template_name or template.key}\n"
        )
    return text
